"""
设备能力接口

执行器 / 编译器 / 录制器只依赖这些 Protocol，具体后端（ADB、测试替身等）按组件注入。
坐标一律为窗口相对坐标（点）。
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol, runtime_checkable

from ...core.constants import WindowState
from ..ocr.types import DescribeResult


@dataclass(frozen=True)
class WindowInfo:
    """镜像窗口在屏幕上的位置与尺寸。"""

    x: float
    y: float
    width: float
    height: float

    def contains(self, screen_x: float, screen_y: float) -> bool:
        return (
            self.x <= screen_x <= self.x + self.width
            and self.y <= screen_y <= self.y + self.height
        )

    def to_relative(self, screen_x: float, screen_y: float) -> tuple:
        return (screen_x - self.x, screen_y - self.y)

    def scale_to(self, device: "WindowInfo") -> tuple:
        """本窗口一个点对应的设备像素数 (sx, sy)。"""
        if self.width <= 0 or self.height <= 0:
            return (1.0, 1.0)
        return (device.width / self.width, device.height / self.height)

    @property
    def orientation(self) -> str:
        return "landscape" if self.width > self.height else "portrait"


@dataclass(frozen=True)
class TypeResult:
    """type_text / press_key 的结果。"""

    success: bool
    warning: Optional[str] = None
    error: Optional[str] = None


@runtime_checkable
class WindowBridge(Protocol):
    def get_window_info(self) -> Optional[WindowInfo]: ...

    def get_host_window(self) -> Optional[WindowInfo]:
        """镜像窗口在宿主桌面上的矩形（宿主坐标）。"""
        ...

    def get_state(self) -> WindowState: ...

    def trigger_menu_action(self, menu: str, item: str) -> bool: ...

    def activate(self) -> None: ...


@runtime_checkable
class InputProvider(Protocol):
    """输入注入。返回 None 表示成功，否则为错误描述。"""

    def tap(self, x: float, y: float) -> Optional[str]: ...

    def swipe(self, from_x: float, from_y: float, to_x: float, to_y: float, duration_ms: int) -> Optional[str]: ...

    def drag(self, from_x: float, from_y: float, to_x: float, to_y: float, duration_ms: int) -> Optional[str]: ...

    def long_press(self, x: float, y: float, duration_ms: int) -> Optional[str]: ...

    def double_tap(self, x: float, y: float) -> Optional[str]: ...

    def type_text(self, text: str) -> TypeResult: ...

    def press_key(self, key: str, modifiers: List[str]) -> TypeResult: ...

    def launch_app(self, name: str) -> Optional[str]: ...

    def open_url(self, url: str) -> Optional[str]: ...

    def shake(self) -> TypeResult: ...


@runtime_checkable
class ScreenDescriber(Protocol):
    """每次调用执行一次 OCR，不做内部缓存。"""

    def describe(self) -> Optional[DescribeResult]: ...


@runtime_checkable
class ScreenCapturer(Protocol):
    def capture_base64(self) -> Optional[str]: ...
