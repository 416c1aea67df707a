"""
终端报告输出

面向用户的结果输出写到 stream（默认 stderr），与 loguru 日志分开；
stdout 留给 record 生成的场景文本。
"""
from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import List, Optional, TextIO

from ...core.constants import StepStatus
from ..executor.types import StepResult


@dataclass
class ScenarioResult:
    name: str
    file_path: str
    step_results: List[StepResult] = field(default_factory=list)
    duration_seconds: float = 0.0
    # 解析失败等未进入执行的错误
    error: Optional[str] = None
    compiled: bool = False

    def count(self, status: StepStatus) -> int:
        return sum(1 for r in self.step_results if r.status == status)

    @property
    def failed(self) -> bool:
        return self.error is not None or any(r.failed for r in self.step_results)


class ConsoleReporter:
    def __init__(self, stream: Optional[TextIO] = None, *, verbose: bool = False) -> None:
        self.stream = stream or sys.stderr
        self.verbose = verbose

    def line(self, text: str = "") -> None:
        self.stream.write(text + "\n")
        self.stream.flush()

    def run_start(self, count: int, command: str = "test") -> None:
        self.line(f"mirrorkit {command}: {count} scenario(s) to run")

    def scenario_start(self, name: str, file_path: str, step_count: int, mode: str = "") -> None:
        suffix = f" [{mode}]" if mode else ""
        self.line()
        self.line(f"Scenario: {name} ({step_count} steps){suffix}")
        self.line(f"  File: {file_path}")

    def step(self, index: int, total: int, result: StepResult) -> None:
        text = f"  [{index + 1}/{total}] {result.step.display_name}  {result.status.value} ({result.duration_seconds:.1f}s)"
        if result.message and (self.verbose or result.failed):
            text += f" - {result.message}"
        self.line(text)

    def scenario_end(self, result: ScenarioResult) -> None:
        overall = "FAIL" if result.failed else "PASS"
        self.line(
            f"  Result: {overall} ({result.duration_seconds:.1f}s) - "
            f"{result.count(StepStatus.PASSED)} passed, {result.count(StepStatus.FAILED)} failed, "
            f"{result.count(StepStatus.SKIPPED)} skipped"
        )

    def parse_error(self, file_path: str, reason: str) -> None:
        self.line()
        self.line(f"Error parsing {file_path}: {reason}")

    def stale_artifact(self, path: str, reason: str) -> None:
        self.line(f"  Stale compiled artifact {path}: {reason} - running live")

    def summary(self, results: List[ScenarioResult]) -> None:
        steps = [r for res in results for r in res.step_results]
        failed_scenarios = [res for res in results if res.failed]
        passed_steps = sum(1 for r in steps if r.status == StepStatus.PASSED)
        failed_steps = sum(1 for r in steps if r.status == StepStatus.FAILED)
        skipped_steps = sum(1 for r in steps if r.status == StepStatus.SKIPPED)

        self.line()
        self.line(f"Summary: {len(results)} scenario(s), {len(steps)} step(s)")
        self.line(f"  Scenarios - PASSED: {len(results) - len(failed_scenarios)}, FAILED: {len(failed_scenarios)}")
        self.line(f"  Steps - PASSED: {passed_steps}, FAILED: {failed_steps}, SKIPPED: {skipped_steps}")

        if failed_scenarios:
            self.line()
            self.line("Failed scenarios:")
            for res in failed_scenarios:
                self.line(f"  - {res.name}")
                if res.error:
                    self.line(f"    {res.error}")
                for r in res.step_results:
                    if r.failed:
                        self.line(f"    {r.step.display_name}: {r.message or 'unknown error'}")
