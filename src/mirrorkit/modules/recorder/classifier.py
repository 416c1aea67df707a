"""
事件分类（纯逻辑，不依赖任何输入后端）

- 鼠标：按下 / 抬起的窗口相对坐标 + 按住时长 → tap / longPress / swipe(方向)
- 键盘：可打印字符累积在缓冲区，刷新时合并为一个 type 事件；
  特殊键或带非 shift 修饰键的按键先刷新缓冲区，再单独记为 pressKey
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from ...core.constants import NON_SHIFT_MODIFIERS, SPECIAL_KEYS, EventKind

# 修饰键输出顺序
MODIFIER_ORDER = ("command", "shift", "option", "control")


class Gesture(str, Enum):
    TAP = "tap"
    LONG_PRESS = "longPress"
    SWIPE = "swipe"
    IGNORED = "ignored"


@dataclass(frozen=True)
class MouseGesture:
    kind: Gesture
    direction: Optional[str] = None


@dataclass(frozen=True)
class ClassifierThresholds:
    tap_distance: float = 5.0
    swipe_distance: float = 30.0
    long_press_seconds: float = 0.5

    @classmethod
    def from_settings(cls, settings) -> "ClassifierThresholds":
        return cls(
            tap_distance=settings.event_tap_distance_threshold,
            swipe_distance=settings.event_swipe_distance_threshold,
            long_press_seconds=settings.event_long_press_threshold,
        )


def classify_mouse(
    down: Tuple[float, float],
    up: Tuple[float, float],
    hold_seconds: float,
    thresholds: ClassifierThresholds = ClassifierThresholds(),
) -> MouseGesture:
    """对一次按下-抬起分类。

    位移介于 tap 与 swipe 阈值之间时视为手抖的 tap，不会因距离被忽略。
    """
    dx = up[0] - down[0]
    dy = up[1] - down[1]
    distance = math.hypot(dx, dy)

    if distance < thresholds.tap_distance:
        if hold_seconds >= thresholds.long_press_seconds:
            return MouseGesture(Gesture.LONG_PRESS)
        return MouseGesture(Gesture.TAP)

    if distance >= thresholds.swipe_distance:
        if abs(dx) > abs(dy):
            direction = "right" if dx > 0 else "left"
        else:
            direction = "down" if dy > 0 else "up"
        return MouseGesture(Gesture.SWIPE, direction)

    return MouseGesture(Gesture.TAP)


def ordered_modifiers(modifiers: Sequence[str]) -> Tuple[str, ...]:
    held = set(modifiers)
    return tuple(m for m in MODIFIER_ORDER if m in held)


@dataclass(frozen=True)
class RecordedEvent:
    """录制期间产生的一条语义事件，只用于生成场景文本。"""

    timestamp: float
    kind: EventKind
    x: float = 0.0
    y: float = 0.0
    label: Optional[str] = None
    direction: Optional[str] = None
    text: Optional[str] = None
    key: Optional[str] = None
    modifiers: Tuple[str, ...] = ()
    duration_ms: int = 0

    @classmethod
    def tap(cls, timestamp: float, x: float, y: float, label: Optional[str]) -> "RecordedEvent":
        return cls(timestamp, EventKind.TAP, x=x, y=y, label=label)

    @classmethod
    def long_press(cls, timestamp: float, x: float, y: float, label: Optional[str], duration_ms: int) -> "RecordedEvent":
        return cls(timestamp, EventKind.LONG_PRESS, x=x, y=y, label=label, duration_ms=duration_ms)

    @classmethod
    def swipe(cls, timestamp: float, direction: str) -> "RecordedEvent":
        return cls(timestamp, EventKind.SWIPE, direction=direction)

    @classmethod
    def typed(cls, timestamp: float, text: str) -> "RecordedEvent":
        return cls(timestamp, EventKind.TYPE, text=text)

    @classmethod
    def press_key(cls, timestamp: float, key: str, modifiers: Sequence[str] = ()) -> "RecordedEvent":
        return cls(timestamp, EventKind.PRESS_KEY, key=key, modifiers=ordered_modifiers(modifiers))


class KeyBuffer:
    """键盘输入合并缓冲区。"""

    def __init__(self) -> None:
        self._chars: List[str] = []

    @property
    def pending(self) -> str:
        return "".join(self._chars)

    def flush(self, timestamp: float) -> Optional[RecordedEvent]:
        if not self._chars:
            return None
        event = RecordedEvent.typed(timestamp, "".join(self._chars))
        self._chars.clear()
        return event

    def feed(
        self,
        timestamp: float,
        *,
        special: Optional[str] = None,
        char: Optional[str] = None,
        modifiers: Sequence[str] = (),
    ) -> List[RecordedEvent]:
        """处理一次按键，返回需要追加到事件日志的事件（可能为空）。

        Args:
            special: 特殊键名（return / escape / ...），与 char 二选一
            char: 按键对应的字符（已去除修饰键影响）
            modifiers: 当前按住的修饰键
        """
        has_command_modifier = any(m in NON_SHIFT_MODIFIERS for m in modifiers)

        if special is not None and special in SPECIAL_KEYS:
            events = self._flushed(timestamp)
            events.append(RecordedEvent.press_key(timestamp, special, modifiers))
            return events

        if has_command_modifier:
            events = self._flushed(timestamp)
            events.append(RecordedEvent.press_key(timestamp, char or special or "unknown", modifiers))
            return events

        if char:
            self._chars.append(char)
        return []

    def _flushed(self, timestamp: float) -> List[RecordedEvent]:
        event = self.flush(timestamp)
        return [event] if event is not None else []
