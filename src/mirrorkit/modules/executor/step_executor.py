"""
步骤执行器（实时模式）

每个步骤：采集状态 → 执行动作 → 校验 → 等待界面稳定。
所有设备访问都经过注入的能力接口（bridge / input / describer / capturer）。
步骤失败以 StepResult 返回，不抛异常；失败时尽力保存一张失败截图。

线程约定：单线程顺序调用 execute()。target 切换会替换能力接口引用，不做并发保护。
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Tuple

from ...core.constants import StepStatus, SwipeDirection
from ...core.errors import UnknownTargetError
from ...core.logger import DEFAULT_LOG_CONTEXT, LogContext
from ..device.protocols import WindowInfo
from ..ocr.recognize import decode_base64_png
from ..scenario.types import (
    AssertNotVisible,
    AssertVisible,
    Home,
    Launch,
    LongPress,
    Measure,
    OpenURL,
    PressKey,
    ResetApp,
    ScenarioStep,
    Screenshot,
    ScrollTo,
    Shake,
    Skipped,
    Swipe,
    SwitchTarget,
    Tap,
    TypeText,
    WaitFor,
)
from .matcher import find_match, format_visible, is_visible
from .types import StepExecutorConfig, StepResult

SwipeEndpoints = Tuple[float, float, float, float]


def swipe_endpoints(direction: str, window: WindowInfo, fraction: float = 0.3) -> Optional[SwipeEndpoints]:
    """以窗口中心为中点、长度为窗口高度 fraction 倍的滑动向量；未知方向返回 None。"""
    cx = window.width / 2.0
    cy = window.height / 2.0
    half = window.height * fraction / 2.0
    d = direction.strip().lower()
    if d == SwipeDirection.UP:
        return (cx, cy + half, cx, cy - half)
    if d == SwipeDirection.DOWN:
        return (cx, cy - half, cx, cy + half)
    if d == SwipeDirection.LEFT:
        return (cx + half, cy, cx - half, cy)
    if d == SwipeDirection.RIGHT:
        return (cx - half, cy, cx + half, cy)
    return None


def safe_filename(value: str) -> str:
    return value.replace(" ", "_").replace("/", "_")


@dataclass
class Subsystems:
    bridge: object
    input_provider: object
    describer: object
    capturer: object


class StepExecutor:
    def __init__(
        self,
        bridge,
        input_provider,
        describer,
        capturer,
        config: Optional[StepExecutorConfig] = None,
        *,
        registry=None,
        log_context: LogContext = DEFAULT_LOG_CONTEXT,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._subsystems = Subsystems(bridge, input_provider, describer, capturer)
        self.config = config or StepExecutorConfig()
        self.registry = registry
        self.log_context = log_context
        self.sleep = sleep
        self.clock = clock
        self._log = log_context.bind("StepExecutor")
        self._handlers = {
            Launch: self._launch,
            Tap: self._tap,
            TypeText: self._type,
            PressKey: self._press_key,
            Swipe: self._swipe,
            WaitFor: self._wait_for,
            AssertVisible: self._assert_visible,
            AssertNotVisible: self._assert_not_visible,
            Screenshot: self._screenshot,
            Home: self._home,
            OpenURL: self._open_url,
            Shake: self._shake,
            ScrollTo: self._scroll_to,
            LongPress: self._long_press,
            ResetApp: self._reset_app,
            Measure: self._measure,
            SwitchTarget: self._switch_target,
        }

    @property
    def bridge(self):
        return self._subsystems.bridge

    @property
    def input_provider(self):
        return self._subsystems.input_provider

    @property
    def describer(self):
        return self._subsystems.describer

    @property
    def capturer(self):
        return self._subsystems.capturer

    # ── 公共入口 ──

    def execute(self, step: ScenarioStep, step_index: int, scenario_name: str) -> StepResult:
        """执行单个步骤并返回结果。"""
        start = self.clock()

        if self.config.dry_run:
            return StepResult(step, StepStatus.PASSED, "dry run", self.clock() - start)

        if isinstance(step, Skipped):
            return StepResult(step, StepStatus.SKIPPED, f"{step.step_type}: {step.reason}", self.clock() - start)

        result = self.run_action(step, scenario_name, start)
        self.log_context.trace(self._log, "步骤 {} {} -> {} {}", step_index + 1, step.display_name,
                               result.status.value, result.message or "")

        if result.failed:
            self.capture_failure_screenshot(step_index, scenario_name)

        # 步骤间固定稳定等待
        self.settle()
        return result

    def run_action(self, step: ScenarioStep, scenario_name: str, start: float) -> StepResult:
        """只执行动作本身（无失败截图 / 稳定等待）。"""
        handler = self._handlers.get(type(step))
        if handler is None:
            return self._result(step, StepStatus.FAILED, f"Unsupported step type: {step.type_key}", start)
        return handler(step, scenario_name, start)

    def settle(self) -> None:
        self.sleep(self.config.settling_delay_ms / 1000.0)

    def capture_failure_screenshot(self, step_index: int, scenario_name: str) -> Optional[str]:
        """保存失败截图；本身失败只记日志。"""
        data = self.capturer.capture_base64()
        raw = decode_base64_png(data) if data else None
        if raw is None:
            self._log.warning("失败截图获取失败: {} 第 {} 步", scenario_name, step_index + 1)
            return None
        path = Path(self.config.screenshot_dir) / f"{safe_filename(scenario_name)}_failure_step{step_index + 1}.png"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(raw)
        except OSError as e:
            self._log.warning(f"失败截图保存失败 {path}: {e}")
            return None
        return str(path)

    # ── 内部工具 ──

    def _result(self, step: ScenarioStep, status: StepStatus, message: Optional[str], start: float) -> StepResult:
        return StepResult(step, status, message, self.clock() - start)

    def _from_error(self, step: ScenarioStep, error: Optional[str], start: float) -> StepResult:
        if error:
            return self._result(step, StepStatus.FAILED, error, start)
        return self._result(step, StepStatus.PASSED, None, start)

    def _locate(self, step: ScenarioStep, label: str, start: float):
        """一次 OCR 定位 label；返回 (match, 失败结果)。"""
        described = self.describer.describe()
        if described is None:
            return None, self._result(step, StepStatus.FAILED, "Failed to capture screen for OCR", start)
        match = find_match(label, described.elements)
        if match is None:
            message = f'Element "{label}" not found on screen. Visible: {format_visible(described.elements)}'
            return None, self._result(step, StepStatus.FAILED, message, start)
        return match, None

    def _visible_now(self, label: str) -> bool:
        described = self.describer.describe()
        return described is not None and is_visible(label, described.elements)

    def _swipe_once(self, endpoints: SwipeEndpoints, duration_ms: Optional[int] = None) -> Optional[str]:
        fx, fy, tx, ty = endpoints
        return self.input_provider.swipe(fx, fy, tx, ty, duration_ms or self.config.swipe_duration_ms)

    # ── 各类步骤 ──

    def _launch(self, step: Launch, scenario_name: str, start: float) -> StepResult:
        return self._from_error(step, self.input_provider.launch_app(step.app_name), start)

    def _open_url(self, step: OpenURL, scenario_name: str, start: float) -> StepResult:
        return self._from_error(step, self.input_provider.open_url(step.url), start)

    def _tap(self, step: Tap, scenario_name: str, start: float) -> StepResult:
        match, failure = self._locate(step, step.target, start)
        if failure:
            return failure
        error = self.input_provider.tap(match.element.x, match.element.y)
        if error:
            return self._result(step, StepStatus.FAILED, error, start)
        return self._result(step, StepStatus.PASSED, f"matched via {match.strategy.value}", start)

    def _long_press(self, step: LongPress, scenario_name: str, start: float) -> StepResult:
        match, failure = self._locate(step, step.target, start)
        if failure:
            return failure
        error = self.input_provider.long_press(match.element.x, match.element.y, self.config.long_press_duration_ms)
        if error:
            return self._result(step, StepStatus.FAILED, error, start)
        return self._result(step, StepStatus.PASSED, f"matched via {match.strategy.value}", start)

    def _type(self, step: TypeText, scenario_name: str, start: float) -> StepResult:
        result = self.input_provider.type_text(step.text)
        if not result.success:
            return self._result(step, StepStatus.FAILED, result.error or "Type failed", start)
        return self._result(step, StepStatus.PASSED, result.warning, start)

    def _press_key(self, step: PressKey, scenario_name: str, start: float) -> StepResult:
        result = self.input_provider.press_key(step.key, list(step.modifiers))
        if not result.success:
            return self._result(step, StepStatus.FAILED, result.error or "Press key failed", start)
        return self._result(step, StepStatus.PASSED, None, start)

    def _shake(self, step: Shake, scenario_name: str, start: float) -> StepResult:
        result = self.input_provider.shake()
        if not result.success:
            return self._result(step, StepStatus.FAILED, result.error or "Shake failed", start)
        return self._result(step, StepStatus.PASSED, None, start)

    def _swipe(self, step: Swipe, scenario_name: str, start: float) -> StepResult:
        window = self.bridge.get_window_info()
        if window is None:
            return self._result(step, StepStatus.FAILED, "Could not get window info for swipe", start)
        endpoints = swipe_endpoints(step.direction, window, self.config.swipe_distance_fraction)
        if endpoints is None:
            message = f"Unknown swipe direction: {step.direction}. Use up/down/left/right."
            return self._result(step, StepStatus.FAILED, message, start)
        return self._from_error(step, self._swipe_once(endpoints), start)

    def _wait_for(self, step: WaitFor, scenario_name: str, start: float) -> StepResult:
        timeout = step.timeout_seconds if step.timeout_seconds is not None else self.config.wait_for_timeout_seconds
        deadline = start + timeout
        interval = self.config.wait_for_poll_interval_ms / 1000.0

        while self.clock() < deadline:
            if self._visible_now(step.target):
                return self._result(step, StepStatus.PASSED, None, start)
            self.sleep(interval)

        # 超时后最后确认一次
        if self._visible_now(step.target):
            return self._result(step, StepStatus.PASSED, None, start)
        return self._result(step, StepStatus.FAILED, f'Timed out waiting for "{step.target}" after {timeout}s', start)

    def _assert_visible(self, step: AssertVisible, scenario_name: str, start: float) -> StepResult:
        described = self.describer.describe()
        if described is None:
            return self._result(step, StepStatus.FAILED, "Failed to capture screen for OCR", start)
        if is_visible(step.target, described.elements):
            return self._result(step, StepStatus.PASSED, None, start)
        message = f'Expected "{step.target}" to be visible. Found: {format_visible(described.elements)}'
        return self._result(step, StepStatus.FAILED, message, start)

    def _assert_not_visible(self, step: AssertNotVisible, scenario_name: str, start: float) -> StepResult:
        described = self.describer.describe()
        if described is None:
            return self._result(step, StepStatus.FAILED, "Failed to capture screen for OCR", start)
        if not is_visible(step.target, described.elements):
            return self._result(step, StepStatus.PASSED, None, start)
        message = f'Expected "{step.target}" to NOT be visible, but it was found'
        return self._result(step, StepStatus.FAILED, message, start)

    def _screenshot(self, step: Screenshot, scenario_name: str, start: float) -> StepResult:
        data = self.capturer.capture_base64()
        if not data:
            return self._result(step, StepStatus.FAILED, "Failed to capture screenshot", start)
        raw = decode_base64_png(data)
        if raw is None:
            return self._result(step, StepStatus.FAILED, "Failed to decode screenshot data", start)

        path = Path(self.config.screenshot_dir) / f"{safe_filename(scenario_name)}_{safe_filename(step.name)}.png"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(raw)
        except OSError as e:
            return self._result(step, StepStatus.FAILED, f"Failed to save screenshot to {path}: {e}", start)
        return self._result(step, StepStatus.PASSED, f"saved to {path}", start)

    def _home(self, step: Home, scenario_name: str, start: float) -> StepResult:
        if not self.bridge.trigger_menu_action("View", "Home Screen"):
            return self._result(step, StepStatus.FAILED, "Failed to trigger Home Screen menu action", start)
        return self._result(step, StepStatus.PASSED, None, start)

    def _scroll_to(self, step: ScrollTo, scenario_name: str, start: float) -> StepResult:
        if self._visible_now(step.target):
            return self._result(step, StepStatus.PASSED, "already visible", start)

        window = self.bridge.get_window_info()
        if window is None:
            return self._result(step, StepStatus.FAILED, "Could not get window info for scroll", start)
        endpoints = swipe_endpoints(step.direction, window, self.config.swipe_distance_fraction)
        if endpoints is None:
            return self._result(step, StepStatus.FAILED, f"Unknown direction: {step.direction}", start)

        previous: Optional[list] = None
        for attempt in range(1, step.max_scrolls + 1):
            error = self._swipe_once(endpoints)
            if error:
                return self._result(step, StepStatus.FAILED, f"Swipe failed: {error}", start)
            self.settle()

            described = self.describer.describe()
            if described is None:
                continue
            if is_visible(step.target, described.elements):
                return self._result(step, StepStatus.PASSED, f"found after {attempt} scroll(s)", start)
            # 可见文本不再变化：列表已到底
            current = sorted(described.texts)
            if current == previous:
                message = f"Scroll exhausted after {attempt} scroll(s) - content stopped changing"
                return self._result(step, StepStatus.FAILED, message, start)
            previous = current

        return self._result(step, StepStatus.FAILED, f"Not found after {step.max_scrolls} scroll(s)", start)

    def _reset_app(self, step: ResetApp, scenario_name: str, start: float) -> StepResult:
        if not self.bridge.trigger_menu_action("View", "App Switcher"):
            return self._result(step, StepStatus.FAILED, "Failed to open App Switcher", start)
        self.settle()

        described = self.describer.describe()
        if described is None:
            self.bridge.trigger_menu_action("View", "Home Screen")
            return self._result(step, StepStatus.FAILED, "Failed to capture screen in App Switcher", start)

        match = find_match(step.app_name, described.elements)
        if match is None:
            self.bridge.trigger_menu_action("View", "Home Screen")
            return self._result(step, StepStatus.PASSED, "App not in switcher (already quit)", start)

        # OCR 命中的是卡片上方的应用名，向下偏移到卡片本体再上滑
        card_x = match.element.x
        card_y = match.element.y + self.config.app_switcher_card_offset
        to_y = max(0.0, card_y - self.config.app_switcher_swipe_distance)
        error = self._swipe_once((card_x, card_y, card_x, to_y), self.config.app_switcher_swipe_duration_ms)
        if error:
            self.bridge.trigger_menu_action("View", "Home Screen")
            return self._result(step, StepStatus.FAILED, f"Failed to swipe app card: {error}", start)

        self.settle()
        self.bridge.trigger_menu_action("View", "Home Screen")
        return self._result(step, StepStatus.PASSED, f"Force-quit {step.app_name}", start)

    def _measure(self, step: Measure, scenario_name: str, start: float) -> StepResult:
        if isinstance(step.action, Skipped):
            return self._result(step, StepStatus.FAILED, f"Action failed: {step.action.reason}", start)
        action_result = self.run_action(step.action, scenario_name, self.clock())
        if action_result.failed:
            return self._result(step, StepStatus.FAILED, f"Action failed: {action_result.message or 'unknown'}", start)

        measure_start = self.clock()
        timeout = step.max_seconds if step.max_seconds is not None else float(self.config.wait_for_timeout_seconds)
        deadline = measure_start + timeout
        interval = self.config.measure_poll_interval_ms / 1000.0

        while True:
            if self._visible_now(step.until):
                measured = self.clock() - measure_start
                if step.max_seconds is not None and measured > step.max_seconds:
                    message = f"{step.name}: {measured:.3f}s exceeded {step.max_seconds:.1f}s max"
                    return self._result(step, StepStatus.FAILED, message, start)
                return self._result(step, StepStatus.PASSED, f"{step.name}: {measured:.3f}s", start)
            if self.clock() >= deadline:
                break
            self.sleep(interval)

        measured = self.clock() - measure_start
        message = f'{step.name}: timed out after {measured:.1f}s waiting for "{step.until}"'
        return self._result(step, StepStatus.FAILED, message, start)

    def _switch_target(self, step: SwitchTarget, scenario_name: str, start: float) -> StepResult:
        if self.registry is None:
            return self._result(step, StepStatus.FAILED, "No target registry - cannot switch targets", start)
        try:
            ctx = self.registry.switch_active(step.name)
        except UnknownTargetError:
            available = ", ".join(t.name for t in self.registry.all_targets)
            return self._result(step, StepStatus.FAILED, f"Unknown target '{step.name}'. Available: [{available}]", start)
        self._subsystems = Subsystems(ctx.bridge, ctx.input, ctx.describer, ctx.capture)
        self._log.info("已切换到目标: {}", step.name)
        return self._result(step, StepStatus.PASSED, f"Switched to target '{step.name}'", start)
