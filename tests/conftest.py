import base64
from types import SimpleNamespace

import pytest

from mirrorkit.core.constants import WindowState
from mirrorkit.modules.device.protocols import TypeResult, WindowInfo
from mirrorkit.modules.executor.types import StepExecutorConfig
from mirrorkit.modules.ocr.types import DescribeResult, DetectedElement

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


class FakeClock:
    """sleep() 推进时间，截止时间循环在测试中瞬间完成。"""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class FakeBridge:
    def __init__(self, window=None, state=WindowState.CONNECTED, host_window=None):
        self.window = window if window is not None else WindowInfo(0, 0, 400, 800)
        # 宿主桌面上的镜像窗口；未指定时与设备窗口重合
        self.host_window = host_window
        self.state = state
        self.menu_ok = True
        self.menu_actions = []

    def get_window_info(self):
        return self.window

    def get_host_window(self):
        return self.host_window or self.window

    def get_state(self):
        return self.state

    def trigger_menu_action(self, menu, item):
        self.menu_actions.append((menu, item))
        return self.menu_ok

    def activate(self):
        return None


class FakeInput:
    def __init__(self):
        self.calls = []
        self.errors = {}

    def _record(self, name, *args):
        self.calls.append((name, *args))
        return self.errors.get(name)

    def _typed(self, name, *args):
        error = self._record(name, *args)
        return TypeResult(success=error is None, error=error)

    def tap(self, x, y):
        return self._record("tap", x, y)

    def swipe(self, from_x, from_y, to_x, to_y, duration_ms):
        return self._record("swipe", from_x, from_y, to_x, to_y, duration_ms)

    def drag(self, from_x, from_y, to_x, to_y, duration_ms):
        return self._record("drag", from_x, from_y, to_x, to_y, duration_ms)

    def long_press(self, x, y, duration_ms):
        return self._record("long_press", x, y, duration_ms)

    def double_tap(self, x, y):
        return self._record("double_tap", x, y)

    def type_text(self, text):
        return self._typed("type_text", text)

    def press_key(self, key, modifiers):
        return self._typed("press_key", key, list(modifiers))

    def launch_app(self, name):
        return self._record("launch_app", name)

    def open_url(self, url):
        return self._record("open_url", url)

    def shake(self):
        return self._typed("shake")

    def named(self, name):
        return [c for c in self.calls if c[0] == name]


def screen(*items):
    """构造 OCR 结果：字符串按行自动排布，或直接给 (text, x, y)。"""
    elements = []
    for i, item in enumerate(items):
        if isinstance(item, tuple):
            text, x, y = item
        else:
            text, x, y = item, 100.0, 100.0 + 40.0 * i
        elements.append(DetectedElement(text=text, x=x, y=y, confidence=0.9))
    return DescribeResult(elements=elements)


class FakeDescriber:
    """按顺序返回脚本化的屏幕；脚本用完后一直返回最后一个。"""

    def __init__(self, *screens):
        self.screens = list(screens) or [screen()]
        self.calls = 0

    def describe(self):
        index = min(self.calls, len(self.screens) - 1)
        self.calls += 1
        return self.screens[index]


class FakeCapturer:
    def __init__(self, data=None):
        self.data = base64.b64encode(PNG_BYTES).decode("ascii") if data is None else data

    def capture_base64(self):
        return self.data


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def device():
    return SimpleNamespace(
        bridge=FakeBridge(),
        input=FakeInput(),
        describer=FakeDescriber(),
        capturer=FakeCapturer(),
    )


@pytest.fixture()
def fast_config(tmp_path):
    return StepExecutorConfig(
        wait_for_timeout_seconds=3,
        wait_for_poll_interval_ms=1000,
        settling_delay_ms=0,
        screenshot_dir=str(tmp_path / "shots"),
        measure_poll_interval_ms=500,
        compiled_sleep_buffer_ms=200,
    )


@pytest.fixture()
def make_screen():
    return screen


@pytest.fixture()
def fakes():
    return SimpleNamespace(
        Clock=FakeClock,
        Bridge=FakeBridge,
        Input=FakeInput,
        Describer=FakeDescriber,
        Capturer=FakeCapturer,
        screen=screen,
    )
