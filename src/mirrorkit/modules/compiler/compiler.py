"""
场景编译器

用实时执行器完整跑一遍场景，借助 RecordingDescriber 缓存每一步的 OCR 结果，
把自适应步骤固化为 hints（坐标 / 延时 / 滚动次数）。
任何一步失败即放弃整个文件，不产出部分编译结果。
"""
from __future__ import annotations

import re
from typing import Callable, List, Optional

from ...core.constants import StepStatus
from ..device.protocols import WindowInfo
from ..executor.matcher import find_match
from ..executor.step_executor import StepExecutor
from ..executor.types import StepResult
from ..ocr.types import DescribeResult
from ..scenario.types import (
    AssertNotVisible,
    AssertVisible,
    Measure,
    ScenarioDefinition,
    ScenarioStep,
    ScrollTo,
    Skipped,
    Tap,
    WaitFor,
)
from .model import CompiledScenario, CompiledStep, SourceInfo, StepHints, device_info, now_iso, sha256_of

_SCROLL_COUNT_RE = re.compile(r"(\d+)\s+scroll")

StepCallback = Callable[[int, int, ScenarioStep, StepResult], None]


class RecordingDescriber:
    """包装 ScreenDescriber，记住最近一次 OCR 结果。"""

    def __init__(self, wrapped) -> None:
        self._wrapped = wrapped
        self.last_result: Optional[DescribeResult] = None
        self.call_count = 0

    def describe(self) -> Optional[DescribeResult]:
        result = self._wrapped.describe()
        self.last_result = result
        self.call_count += 1
        return result


def parse_scroll_count(message: Optional[str]) -> int:
    """从 "found after 3 scroll(s)" 这类消息中取出滚动次数。"""
    if not message or message == "already visible":
        return 0
    m = _SCROLL_COUNT_RE.search(message)
    return int(m.group(1)) if m else 0


def build_hints(
    step: ScenarioStep,
    result: StepResult,
    describer: RecordingDescriber,
    elapsed_ms: int,
) -> Optional[StepHints]:
    if isinstance(step, Skipped):
        return None

    if isinstance(step, Tap):
        last = describer.last_result
        match = find_match(step.target, last.elements) if last is not None else None
        if match is not None:
            return StepHints.tap(match.element.x, match.element.y, match.element.confidence, match.strategy.value)
        return StepHints.sleep(elapsed_ms)

    if isinstance(step, (WaitFor, AssertVisible, AssertNotVisible, Measure)):
        return StepHints.sleep(elapsed_ms)

    if isinstance(step, ScrollTo):
        return StepHints.scroll_sequence(parse_scroll_count(result.message), step.direction)

    return StepHints.passthrough()


def compile_scenario(
    definition: ScenarioDefinition,
    executor: StepExecutor,
    describer: RecordingDescriber,
    window: WindowInfo,
    on_step: Optional[StepCallback] = None,
) -> Optional[CompiledScenario]:
    """执行一次场景并生成编译产物。

    Args:
        executor: 以 describer 作为 ScreenDescriber 构造的实时执行器
        describer: 记录 OCR 结果的包装器
        window: 编译时的窗口尺寸，用于回放前的过期检查
        on_step: 每步完成后的回调 (index, total, step, result)
    Returns:
        任一步失败时返回 None
    """
    log = executor.log_context.bind("Compiler")
    try:
        source_hash = sha256_of(definition.file_path)
    except OSError as e:
        log.warning(f"无法计算源文件哈希 {definition.file_path}: {e}")
        source_hash = ""

    total = len(definition.steps)
    compiled_steps: List[CompiledStep] = []
    for index, step in enumerate(definition.steps):
        start = executor.clock()
        result = executor.execute(step, index, definition.name)
        elapsed_ms = int((executor.clock() - start) * 1000)

        if on_step is not None:
            on_step(index, total, step, result)

        if result.status == StepStatus.FAILED:
            log.error("编译中止: {} 第 {} 步 {} 失败: {}", definition.name, index + 1, step.display_name,
                      result.message or "unknown")
            return None

        compiled_steps.append(CompiledStep(
            index=index,
            type=step.type_key,
            label=step.label,
            hints=build_hints(step, result, describer, elapsed_ms),
        ))

    return CompiledScenario(
        source=SourceInfo(sha256=source_hash, compiled_at=now_iso()),
        device=device_info(window),
        steps=compiled_steps,
    )
