"""
常量和枚举定义
"""
from enum import Enum


class StepStatus(str, Enum):
    """步骤执行状态"""
    PASSED = "PASS"
    FAILED = "FAIL"
    SKIPPED = "SKIP"


class MatchStrategy(str, Enum):
    """OCR 文本匹配策略（按优先级排列）"""
    EXACT = "exact"
    CASE_INSENSITIVE = "case-insensitive"
    SUBSTRING = "substring"


class CompiledAction(str, Enum):
    """编译提示类型"""
    TAP = "tap"
    SLEEP = "sleep"
    SCROLL_SEQUENCE = "scroll_sequence"
    PASSTHROUGH = "passthrough"


class SwipeDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


class EventKind(str, Enum):
    """录制事件类型"""
    TAP = "tap"
    SWIPE = "swipe"
    LONG_PRESS = "longPress"
    TYPE = "type"
    PRESS_KEY = "pressKey"


class WindowState(str, Enum):
    """镜像窗口 / 设备连接状态"""
    CONNECTED = "connected"
    PAUSED = "paused"
    NO_WINDOW = "no_window"
    NOT_RUNNING = "not_running"


# 录制时立即刷新输入缓冲并单独记为 press_key 的按键
SPECIAL_KEYS = frozenset({
    "return", "escape", "tab", "delete", "space",
    "up", "down", "left", "right", "forwarddelete",
})

# 非 shift 修饰键；按住任意一个时按键不并入 type 文本
NON_SHIFT_MODIFIERS = frozenset({"command", "option", "control"})

AI_ONLY_STEP_KEYS = frozenset({"remember", "condition", "repeat", "verify", "summarize"})

COMPILED_FORMAT_VERSION = 1
