"""
场景步骤类型

步骤集合是封闭的：每种步骤一个不可变 dataclass。
AI 专用 / 未知的键解析为 Skipped，永远不进入确定性执行路径。
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Optional, Tuple


@dataclass(frozen=True)
class ScenarioStep:
    kind: ClassVar[str] = ""
    # 作为 label 的字段名，None 表示无 label
    value_field: ClassVar[Optional[str]] = None

    @property
    def type_key(self) -> str:
        """YAML 中的步骤键，如 tap / wait_for。"""
        return self.kind

    @property
    def label(self) -> Optional[str]:
        if self.value_field is None:
            return None
        return getattr(self, self.value_field)

    @property
    def display_name(self) -> str:
        if self.label is None:
            return self.type_key
        return f'{self.type_key}: "{self.label}"'


@dataclass(frozen=True)
class Launch(ScenarioStep):
    kind: ClassVar[str] = "launch"
    value_field: ClassVar[Optional[str]] = "app_name"
    app_name: str


@dataclass(frozen=True)
class Tap(ScenarioStep):
    kind: ClassVar[str] = "tap"
    value_field: ClassVar[Optional[str]] = "target"
    target: str


@dataclass(frozen=True)
class TypeText(ScenarioStep):
    kind: ClassVar[str] = "type"
    value_field: ClassVar[Optional[str]] = "text"
    text: str


@dataclass(frozen=True)
class PressKey(ScenarioStep):
    kind: ClassVar[str] = "press_key"
    value_field: ClassVar[Optional[str]] = "key"
    key: str
    modifiers: Tuple[str, ...] = ()

    @property
    def display_name(self) -> str:
        if not self.modifiers:
            return f'press_key: "{self.key}"'
        return f'press_key: "{self.key}" [{", ".join(self.modifiers)}]'


@dataclass(frozen=True)
class Swipe(ScenarioStep):
    kind: ClassVar[str] = "swipe"
    value_field: ClassVar[Optional[str]] = "direction"
    direction: str


@dataclass(frozen=True)
class WaitFor(ScenarioStep):
    kind: ClassVar[str] = "wait_for"
    value_field: ClassVar[Optional[str]] = "target"
    target: str
    timeout_seconds: Optional[int] = None


@dataclass(frozen=True)
class AssertVisible(ScenarioStep):
    kind: ClassVar[str] = "assert_visible"
    value_field: ClassVar[Optional[str]] = "target"
    target: str


@dataclass(frozen=True)
class AssertNotVisible(ScenarioStep):
    kind: ClassVar[str] = "assert_not_visible"
    value_field: ClassVar[Optional[str]] = "target"
    target: str


@dataclass(frozen=True)
class Screenshot(ScenarioStep):
    kind: ClassVar[str] = "screenshot"
    value_field: ClassVar[Optional[str]] = "name"
    name: str


@dataclass(frozen=True)
class Home(ScenarioStep):
    kind: ClassVar[str] = "home"


@dataclass(frozen=True)
class OpenURL(ScenarioStep):
    kind: ClassVar[str] = "open_url"
    value_field: ClassVar[Optional[str]] = "url"
    url: str


@dataclass(frozen=True)
class Shake(ScenarioStep):
    kind: ClassVar[str] = "shake"


@dataclass(frozen=True)
class ScrollTo(ScenarioStep):
    kind: ClassVar[str] = "scroll_to"
    value_field: ClassVar[Optional[str]] = "target"
    target: str
    direction: str = "up"
    max_scrolls: int = 10


@dataclass(frozen=True)
class LongPress(ScenarioStep):
    kind: ClassVar[str] = "long_press"
    value_field: ClassVar[Optional[str]] = "target"
    target: str


@dataclass(frozen=True)
class ResetApp(ScenarioStep):
    kind: ClassVar[str] = "reset_app"
    value_field: ClassVar[Optional[str]] = "app_name"
    app_name: str


@dataclass(frozen=True)
class Measure(ScenarioStep):
    kind: ClassVar[str] = "measure"
    value_field: ClassVar[Optional[str]] = "name"
    name: str
    action: ScenarioStep
    until: str
    max_seconds: Optional[float] = None


@dataclass(frozen=True)
class SwitchTarget(ScenarioStep):
    kind: ClassVar[str] = "target"
    value_field: ClassVar[Optional[str]] = "name"
    name: str


@dataclass(frozen=True)
class Skipped(ScenarioStep):
    """AI 专用或未知步骤，携带跳过原因。"""

    step_type: str
    reason: str

    @property
    def type_key(self) -> str:
        return self.step_type

    @property
    def display_name(self) -> str:
        return f"{self.step_type} (skipped)"


@dataclass(frozen=True)
class ScenarioDefinition:
    """解析后的场景，构造后不可变。"""

    name: str
    description: str
    file_path: str
    steps: Tuple[ScenarioStep, ...] = ()
    app: str = ""
    targets: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def step_types(self) -> Tuple[str, ...]:
        return tuple(s.type_key for s in self.steps)
