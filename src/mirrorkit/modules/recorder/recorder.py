"""
事件录制器

通过 pynput 以只监听方式接入全局鼠标 / 键盘事件流，转换为 RecordedEvent 日志。

- 窗口几何信息：每个事件都刷新宿主窗口矩形（录制中窗口可能被移动或缩放）
- 坐标换算：宿主指针位置 → 窗口相对点 → 按设备尺寸缩放为设备像素，标注与事件都用设备坐标
- OCR 元素缓存：只在鼠标按下时刷新，抬起时用缓存为 tap 标注文字
- 回调线程通过 id 在全局注册表中查找录制器，不持有录制器的裸引用
- stop() 先刷新键盘缓冲区再返回事件日志，结尾输入不会丢失
"""
from __future__ import annotations

import itertools
import math
import threading
import time
from typing import Callable, Dict, List, Optional, Set, Tuple

from ...core.logger import DEFAULT_LOG_CONTEXT, LogContext
from ..device.protocols import WindowInfo
from ..ocr.types import DetectedElement
from .classifier import (
    ClassifierThresholds,
    Gesture,
    KeyBuffer,
    MouseGesture,
    RecordedEvent,
    classify_mouse,
)

# pynput Key.name → 录制用特殊键名
PYNPUT_SPECIAL_KEYS = {
    "enter": "return",
    "esc": "escape",
    "tab": "tab",
    "backspace": "delete",
    "space": "space",
    "up": "up",
    "down": "down",
    "left": "left",
    "right": "right",
    "delete": "forwarddelete",
}

PYNPUT_MODIFIERS = {
    "cmd": "command", "cmd_l": "command", "cmd_r": "command",
    "shift": "shift", "shift_l": "shift", "shift_r": "shift",
    "alt": "option", "alt_l": "option", "alt_r": "option", "alt_gr": "option",
    "ctrl": "control", "ctrl_l": "control", "ctrl_r": "control",
}


# ── 回调注册表 ──

_registry: Dict[int, "EventRecorder"] = {}
_registry_lock = threading.Lock()
_ids = itertools.count(1)


def register(recorder: "EventRecorder") -> int:
    with _registry_lock:
        rid = next(_ids)
        _registry[rid] = recorder
        return rid


def unregister(rid: int) -> None:
    with _registry_lock:
        _registry.pop(rid, None)


def lookup(rid: int) -> Optional["EventRecorder"]:
    with _registry_lock:
        return _registry.get(rid)


def _on_click(rid: int, x, y, button, pressed, *_args) -> None:
    recorder = lookup(rid)
    if recorder is None or getattr(button, "name", None) != "left":
        return
    if pressed:
        recorder.handle_mouse_down(x, y)
    else:
        recorder.handle_mouse_up(x, y)


def _on_press(rid: int, key, *_args) -> None:
    recorder = lookup(rid)
    if recorder is not None:
        recorder.handle_pynput_key(key, pressed=True)


def _on_release(rid: int, key, *_args) -> None:
    recorder = lookup(rid)
    if recorder is not None:
        recorder.handle_pynput_key(key, pressed=False)


class EventRecorder:
    def __init__(
        self,
        bridge,
        describer=None,
        thresholds: Optional[ClassifierThresholds] = None,
        *,
        label_max_distance: float = 50.0,
        log_context: LogContext = DEFAULT_LOG_CONTEXT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.bridge = bridge
        self.describer = describer
        self.thresholds = thresholds or ClassifierThresholds()
        self.label_max_distance = label_max_distance
        self.log_context = log_context
        self._clock = clock
        self._log = log_context.bind("EventRecorder")

        self._lock = threading.Lock()
        self._events: List[RecordedEvent] = []
        self._keys = KeyBuffer()
        self._held_modifiers: Set[str] = set()
        self._window: Optional[WindowInfo] = None
        self._device: Optional[WindowInfo] = None
        self._elements: List[DetectedElement] = []
        self._down: Optional[Tuple[float, float]] = None
        self._down_time = 0.0

        self._rid: Optional[int] = None
        self._mouse_listener = None
        self._keyboard_listener = None

    @property
    def events(self) -> List[RecordedEvent]:
        with self._lock:
            return list(self._events)

    @property
    def running(self) -> bool:
        return self._rid is not None

    @property
    def window(self) -> Optional[WindowInfo]:
        return self._window

    # ── 生命周期 ──

    def start(self) -> bool:
        """开始监听；窗口不可用或无法创建监听器时返回 False。"""
        self._window = self.bridge.get_host_window()
        self._device = self.bridge.get_window_info()
        if self._window is None or self._device is None:
            self._log.error("找不到镜像窗口，无法开始录制")
            return False

        self.refresh_ocr_cache()

        try:
            from pynput import keyboard, mouse
        except ImportError as e:
            self._log.error(f"无法加载 pynput 输入监听（需要图形会话）: {e}")
            return False

        rid = register(self)
        self._mouse_listener = mouse.Listener(on_click=lambda *a: _on_click(rid, *a))
        self._keyboard_listener = keyboard.Listener(
            on_press=lambda *a: _on_press(rid, *a),
            on_release=lambda *a: _on_release(rid, *a),
        )
        self._mouse_listener.start()
        self._keyboard_listener.start()
        self._rid = rid
        self._log.info("开始录制: 窗口 {}x{} @ ({}, {})", int(self._window.width), int(self._window.height),
                       int(self._window.x), int(self._window.y))
        return True

    def stop(self) -> List[RecordedEvent]:
        """停止监听，刷新键盘缓冲区并返回完整事件日志。"""
        if self._rid is not None:
            unregister(self._rid)
            self._rid = None
        for listener in (self._mouse_listener, self._keyboard_listener):
            if listener is not None:
                listener.stop()
        self._mouse_listener = None
        self._keyboard_listener = None

        with self._lock:
            self._append(self._keys.flush(self._clock()))
            events = list(self._events)
        self._log.info("录制结束，共 {} 个事件", len(events))
        return events

    # ── 缓存 ──

    def refresh_geometry(self) -> None:
        info = self.bridge.get_host_window()
        if info is not None:
            self._window = info

    def refresh_device_size(self) -> None:
        info = self.bridge.get_window_info()
        if info is not None:
            self._device = info

    def to_device(self, screen_x: float, screen_y: float) -> Tuple[float, float]:
        """宿主屏幕坐标 → 设备像素坐标。"""
        rel_x, rel_y = self._window.to_relative(screen_x, screen_y)
        if self._device is None:
            return rel_x, rel_y
        sx, sy = self._window.scale_to(self._device)
        return rel_x * sx, rel_y * sy

    def refresh_ocr_cache(self) -> None:
        if self.describer is None:
            return
        result = self.describer.describe()
        if result is not None:
            self._elements = list(result.elements)

    def nearest_label(self, x: float, y: float) -> Optional[str]:
        """半径 label_max_distance 内最近元素的文字。"""
        best: Optional[str] = None
        best_distance = math.inf
        for element in self._elements:
            distance = math.hypot(element.x - x, element.y - y)
            if distance < best_distance and distance <= self.label_max_distance:
                best_distance = distance
                best = element.text
        return best

    # ── 事件处理 ──

    def _append(self, event: Optional[RecordedEvent]) -> None:
        if event is not None:
            self._events.append(event)

    def _inside(self, x: float, y: float) -> bool:
        return self._window is not None and self._window.contains(x, y)

    def handle_mouse_down(self, screen_x: float, screen_y: float) -> None:
        with self._lock:
            self.refresh_geometry()
            if not self._inside(screen_x, screen_y):
                return
            self._down = (screen_x, screen_y)
            self._down_time = self._clock()
            self.refresh_device_size()
            # 按下时屏幕仍是用户看到的状态
            self.refresh_ocr_cache()

    def handle_mouse_up(self, screen_x: float, screen_y: float) -> MouseGesture:
        with self._lock:
            self.refresh_geometry()
            down, self._down = self._down, None
            if down is None or self._window is None:
                return MouseGesture(Gesture.IGNORED)
            if not (self._inside(*down) or self._inside(screen_x, screen_y)):
                return MouseGesture(Gesture.IGNORED)

            now = self._clock()
            hold = now - self._down_time
            rel_down = self._window.to_relative(*down)
            rel_up = self._window.to_relative(screen_x, screen_y)
            gesture = classify_mouse(rel_down, rel_up, hold, self.thresholds)

            self._append(self._keys.flush(now))
            x, y = self.to_device(*down)
            if gesture.kind == Gesture.TAP:
                self._append(RecordedEvent.tap(now, x, y, self.nearest_label(x, y)))
            elif gesture.kind == Gesture.LONG_PRESS:
                self._append(RecordedEvent.long_press(now, x, y, self.nearest_label(x, y), int(round(hold * 1000))))
            elif gesture.kind == Gesture.SWIPE:
                self._append(RecordedEvent.swipe(now, gesture.direction))

            self.log_context.trace(self._log, "鼠标手势 {} {}", gesture.kind.value, gesture.direction or "")
            return gesture

    def handle_modifier(self, name: str, pressed: bool) -> None:
        with self._lock:
            if pressed:
                self._held_modifiers.add(name)
            else:
                self._held_modifiers.discard(name)

    def handle_key(self, *, special: Optional[str] = None, char: Optional[str] = None) -> None:
        with self._lock:
            self.refresh_geometry()
            for event in self._keys.feed(self._clock(), special=special, char=char,
                                         modifiers=sorted(self._held_modifiers)):
                self._append(event)

    def handle_pynput_key(self, key, pressed: bool) -> None:
        """把 pynput 的 Key / KeyCode 转换为 handle_modifier / handle_key 调用。"""
        name = getattr(key, "name", None)
        if name in PYNPUT_MODIFIERS:
            self.handle_modifier(PYNPUT_MODIFIERS[name], pressed)
            return
        if not pressed:
            return
        if name in PYNPUT_SPECIAL_KEYS:
            self.handle_key(special=PYNPUT_SPECIAL_KEYS[name])
            return

        char = getattr(key, "char", None)
        if self._held_modifiers - {"shift"} and self._keyboard_listener is not None:
            # 修饰键会改变 char（如 ctrl+c → \x03），取去修饰后的按键
            char = getattr(self._keyboard_listener.canonical(key), "char", None) or char
        if char:
            self.handle_key(char=char)
