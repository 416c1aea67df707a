"""
编译步骤执行器（回放模式）

按 hints 逐步分派：
- tap:              直接点击缓存坐标，不做 OCR
- sleep:            等待 observed_delay + 固定缓冲
- scroll_sequence:  连续滑动 N 次，中途不再检查
- passthrough / 无 hints: 该步骤整体交给实时执行器

回放是逐步的优化，而不是整体模式切换。
"""
from __future__ import annotations

from typing import Optional

from ...core.constants import CompiledAction, StepStatus
from ..compiler.model import CompiledStep, StepHints
from ..scenario.types import ScenarioStep
from .step_executor import StepExecutor, swipe_endpoints
from .types import StepResult


class CompiledStepExecutor:
    def __init__(self, live: StepExecutor) -> None:
        self.live = live
        self.config = live.config
        self._log = live.log_context.bind("CompiledStepExecutor")

    def execute(
        self,
        step: ScenarioStep,
        compiled_step: Optional[CompiledStep],
        step_index: int,
        scenario_name: str,
    ) -> StepResult:
        hints = compiled_step.hints if compiled_step is not None else None
        if hints is None or hints.compiled_action == CompiledAction.PASSTHROUGH or self.config.dry_run:
            return self.live.execute(step, step_index, scenario_name)

        start = self.live.clock()
        if compiled_step.type != step.type_key:
            result = self._result(step, StepStatus.FAILED,
                                  f"compiled step type '{compiled_step.type}' does not match '{step.type_key}'", start)
        elif hints.compiled_action == CompiledAction.TAP:
            result = self._tap(step, hints, start)
        elif hints.compiled_action == CompiledAction.SLEEP:
            result = self._sleep(step, hints, start)
        else:
            result = self._scroll_sequence(step, hints, start)

        self.live.log_context.trace(self._log, "编译步骤 {} {} -> {} {}", step_index + 1, step.display_name,
                                    result.status.value, result.message or "")
        if result.failed:
            self.live.capture_failure_screenshot(step_index, scenario_name)
        self.live.settle()
        return result

    def _result(self, step: ScenarioStep, status: StepStatus, message: Optional[str], start: float) -> StepResult:
        return StepResult(step, status, message, self.live.clock() - start)

    def _tap(self, step: ScenarioStep, hints: StepHints, start: float) -> StepResult:
        if hints.tap_x is None or hints.tap_y is None:
            return self._result(step, StepStatus.FAILED, "compiled tap missing coordinates", start)
        error = self.live.input_provider.tap(hints.tap_x, hints.tap_y)
        if error:
            return self._result(step, StepStatus.FAILED, error, start)
        return self._result(step, StepStatus.PASSED, f"compiled tap via {hints.match_strategy or 'compiled'}", start)

    def _sleep(self, step: ScenarioStep, hints: StepHints, start: float) -> StepResult:
        delay_ms = (hints.observed_delay_ms or 0) + self.config.compiled_sleep_buffer_ms
        if delay_ms > 0:
            self.live.sleep(delay_ms / 1000.0)
        return self._result(step, StepStatus.PASSED, f"compiled sleep {delay_ms}ms", start)

    def _scroll_sequence(self, step: ScenarioStep, hints: StepHints, start: float) -> StepResult:
        count = hints.scroll_count or 0
        direction = hints.scroll_direction or "up"
        if count == 0:
            return self._result(step, StepStatus.PASSED, "compiled scroll: already visible", start)

        window = self.live.bridge.get_window_info()
        if window is None:
            return self._result(step, StepStatus.FAILED, "Could not get window info for compiled scroll", start)
        endpoints = swipe_endpoints(direction, window, self.config.swipe_distance_fraction)
        if endpoints is None:
            return self._result(step, StepStatus.FAILED, f"Unknown compiled scroll direction: {direction}", start)

        fx, fy, tx, ty = endpoints
        for i in range(count):
            error = self.live.input_provider.swipe(fx, fy, tx, ty, self.config.swipe_duration_ms)
            if error:
                return self._result(step, StepStatus.FAILED, f"Compiled scroll {i + 1}/{count} failed: {error}", start)
            self.live.settle()
        return self._result(step, StepStatus.PASSED, f"compiled {count} scroll(s) {direction}", start)
