"""执行器数据类型与配置。"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from ...core.constants import StepStatus
from ..scenario.types import ScenarioStep


@dataclass(frozen=True)
class StepResult:
    """一次步骤尝试的结果，生成后不再修改。"""

    step: ScenarioStep
    status: StepStatus
    message: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def passed(self) -> bool:
        return self.status == StepStatus.PASSED

    @property
    def failed(self) -> bool:
        return self.status == StepStatus.FAILED


@dataclass(frozen=True)
class StepExecutorConfig:
    wait_for_timeout_seconds: int = 15
    wait_for_poll_interval_ms: int = 1000
    settling_delay_ms: int = 500
    screenshot_dir: str = "./mirroir-test-results"
    dry_run: bool = False
    swipe_distance_fraction: float = 0.3
    swipe_duration_ms: int = 300
    long_press_duration_ms: int = 1000
    measure_poll_interval_ms: int = 500
    compiled_sleep_buffer_ms: int = 200
    app_switcher_card_offset: float = 150.0
    app_switcher_swipe_distance: float = 400.0
    app_switcher_swipe_duration_ms: int = 200

    @classmethod
    def from_settings(cls, settings, **overrides) -> "StepExecutorConfig":
        cfg = cls(
            wait_for_timeout_seconds=settings.wait_for_timeout_seconds,
            wait_for_poll_interval_ms=settings.wait_for_poll_interval_ms,
            settling_delay_ms=settings.step_settling_delay_ms,
            screenshot_dir=settings.screenshot_dir,
            swipe_distance_fraction=settings.swipe_distance_fraction,
            swipe_duration_ms=settings.swipe_duration_ms,
            long_press_duration_ms=settings.long_press_duration_ms,
            measure_poll_interval_ms=settings.measure_poll_interval_ms,
            compiled_sleep_buffer_ms=settings.compiled_sleep_buffer_ms,
            app_switcher_card_offset=settings.app_switcher_card_offset,
            app_switcher_swipe_distance=settings.app_switcher_swipe_distance,
            app_switcher_swipe_duration_ms=settings.app_switcher_swipe_duration_ms,
        )
        return replace(cfg, **overrides) if overrides else cfg
