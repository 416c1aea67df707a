"""
统一适配器：把 ADB 封装成执行器使用的能力接口

- WindowBridge:  get_window_info / get_host_window / get_state / trigger_menu_action / activate
- InputProvider: tap / swipe / drag / long_press / double_tap / type_text / press_key / launch_app / open_url / shake
- ScreenCapturer: capture_base64

所有 AdbError 在这里转为错误字符串（或 TypeResult.error），不向执行器抛出，也不重试。
"""
from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ...core.constants import WindowState
from ...core.logger import logger
from .adb import Adb, AdbError
from .protocols import TypeResult, WindowInfo

# 命名按键 → Android keycode
KEYCODES: Dict[str, str] = {
    "return": "KEYCODE_ENTER",
    "enter": "KEYCODE_ENTER",
    "escape": "KEYCODE_ESCAPE",
    "tab": "KEYCODE_TAB",
    "delete": "KEYCODE_DEL",
    "forwarddelete": "KEYCODE_FORWARD_DEL",
    "space": "KEYCODE_SPACE",
    "up": "KEYCODE_DPAD_UP",
    "down": "KEYCODE_DPAD_DOWN",
    "left": "KEYCODE_DPAD_LEFT",
    "right": "KEYCODE_DPAD_RIGHT",
    "home": "KEYCODE_HOME",
}

MODIFIER_KEYCODES: Dict[str, str] = {
    "command": "KEYCODE_META_LEFT",
    "control": "KEYCODE_CTRL_LEFT",
    "option": "KEYCODE_ALT_LEFT",
    "shift": "KEYCODE_SHIFT_LEFT",
}

# (菜单, 菜单项) → keycode
MENU_ACTIONS: Dict[tuple, str] = {
    ("View", "Home Screen"): "KEYCODE_HOME",
    ("View", "App Switcher"): "KEYCODE_APP_SWITCH",
}


def keycode_for(name: str) -> Optional[str]:
    key = name.strip().lower()
    if key in KEYCODES:
        return KEYCODES[key]
    if len(key) == 1 and key.isalnum():
        return f"KEYCODE_{key.upper()}"
    return None


@dataclass
class AdapterConfig:
    adb_path: str = "adb"
    adb_serial: str = ""
    timeout: float = 10.0
    screencap_timeout: float = 15.0
    # 场景中的应用名 → 包名
    app_packages: Dict[str, str] = field(default_factory=dict)
    # 宿主桌面上镜像窗口的 (x, y, width, height)；None 表示 1:1 且位于原点
    mirror_window: Optional[Tuple[float, float, float, float]] = None


class DeviceAdapter:
    def __init__(self, cfg: AdapterConfig, adb: Optional[Adb] = None) -> None:
        self.cfg = cfg
        self.adb = adb or Adb(cfg.adb_path, serial=cfg.adb_serial, timeout=cfg.timeout)
        self._log = logger.bind(module="DeviceAdapter")

    # ── WindowBridge ──

    def get_window_info(self) -> Optional[WindowInfo]:
        try:
            w, h = self.adb.window_size()
        except AdbError as e:
            self._log.warning(f"获取窗口尺寸失败: {e}")
            return None
        return WindowInfo(x=0, y=0, width=w, height=h)

    def get_host_window(self) -> Optional[WindowInfo]:
        if self.cfg.mirror_window is None:
            return self.get_window_info()
        x, y, width, height = self.cfg.mirror_window
        return WindowInfo(x=x, y=y, width=width, height=height)

    def get_state(self) -> WindowState:
        try:
            devices = self.adb.devices()
        except AdbError as e:
            self._log.warning(f"ADB 不可用: {e}")
            return WindowState.NOT_RUNNING
        if not devices:
            return WindowState.NO_WINDOW
        if self.cfg.adb_serial and self.cfg.adb_serial not in devices:
            return WindowState.NO_WINDOW
        return WindowState.CONNECTED

    def trigger_menu_action(self, menu: str, item: str) -> bool:
        keycode = MENU_ACTIONS.get((menu, item))
        if keycode is None:
            self._log.warning(f"不支持的菜单动作: {menu} > {item}")
            return False
        try:
            self.adb.keyevent(keycode)
        except AdbError as e:
            self._log.warning(f"菜单动作失败 {menu} > {item}: {e}")
            return False
        return True

    def activate(self) -> None:
        # ADB 设备无窗口焦点概念
        return None

    # ── InputProvider ──

    def _call(self, func, *args) -> Optional[str]:
        try:
            func(*args)
        except AdbError as e:
            return str(e)
        return None

    def tap(self, x: float, y: float) -> Optional[str]:
        return self._call(self.adb.tap, round(x), round(y))

    def swipe(self, from_x: float, from_y: float, to_x: float, to_y: float, duration_ms: int) -> Optional[str]:
        return self._call(self.adb.swipe, round(from_x), round(from_y), round(to_x), round(to_y), duration_ms)

    def drag(self, from_x: float, from_y: float, to_x: float, to_y: float, duration_ms: int) -> Optional[str]:
        return self._call(self.adb.swipe, round(from_x), round(from_y), round(to_x), round(to_y), duration_ms)

    def long_press(self, x: float, y: float, duration_ms: int) -> Optional[str]:
        return self._call(self.adb.long_press, round(x), round(y), duration_ms)

    def double_tap(self, x: float, y: float) -> Optional[str]:
        return self.tap(x, y) or self.tap(x, y)

    def type_text(self, text: str) -> TypeResult:
        error = self._call(self.adb.input_text, text)
        if error:
            return TypeResult(success=False, error=error)
        if not text.isascii():
            return TypeResult(success=True, warning="adb input text 可能无法输入非 ASCII 字符")
        return TypeResult(success=True)

    def press_key(self, key: str, modifiers: List[str]) -> TypeResult:
        keycode = keycode_for(key)
        if keycode is None:
            return TypeResult(success=False, error=f"Unknown key: {key}")
        mods = []
        for mod in modifiers:
            mod_code = MODIFIER_KEYCODES.get(mod.lower())
            if mod_code is None:
                return TypeResult(success=False, error=f"Unknown modifier: {mod}")
            mods.append(mod_code)
        if mods:
            error = self._call(self.adb.keycombination, *mods, keycode)
        else:
            error = self._call(self.adb.keyevent, keycode)
        return TypeResult(success=error is None, error=error)

    def launch_app(self, name: str) -> Optional[str]:
        pkg = self.cfg.app_packages.get(name, name)
        if "." not in pkg:
            return f"Unknown app '{name}': add it to app_packages"
        return self._call(self.adb.start_app, pkg)

    def open_url(self, url: str) -> Optional[str]:
        return self._call(self.adb.open_url, url)

    def shake(self) -> TypeResult:
        return TypeResult(success=False, error="shake is not supported over adb")

    # ── ScreenCapturer ──

    def capture_base64(self) -> Optional[str]:
        try:
            png = self.adb.screencap(timeout=self.cfg.screencap_timeout)
        except AdbError as e:
            self._log.warning(f"截图失败: {e}")
            return None
        return base64.b64encode(png).decode("ascii")
