"""
编译产物数据模型与读写

编译产物是可失效的缓存：版本、源文件哈希、步骤类型序列、窗口尺寸任一不一致即视为过期，
回放前必须拒绝。文件与场景同目录，扩展名 .yaml 替换为 .compiled.json。
"""
from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from ...core.constants import COMPILED_FORMAT_VERSION, CompiledAction
from ...core.errors import StaleCompiledArtifact
from ..device.protocols import WindowInfo


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class StepHints(_CamelModel):
    compiled_action: CompiledAction

    # tap
    tap_x: Optional[float] = None
    tap_y: Optional[float] = None
    confidence: Optional[float] = None
    match_strategy: Optional[str] = None

    # sleep
    observed_delay_ms: Optional[int] = None

    # scroll
    scroll_count: Optional[int] = None
    scroll_direction: Optional[str] = None

    @classmethod
    def tap(cls, x: float, y: float, confidence: float, strategy: str) -> "StepHints":
        return cls(compiled_action=CompiledAction.TAP, tap_x=x, tap_y=y, confidence=confidence, match_strategy=strategy)

    @classmethod
    def sleep(cls, delay_ms: int) -> "StepHints":
        return cls(compiled_action=CompiledAction.SLEEP, observed_delay_ms=delay_ms)

    @classmethod
    def scroll_sequence(cls, count: int, direction: str) -> "StepHints":
        return cls(compiled_action=CompiledAction.SCROLL_SEQUENCE, scroll_count=count, scroll_direction=direction)

    @classmethod
    def passthrough(cls) -> "StepHints":
        return cls(compiled_action=CompiledAction.PASSTHROUGH)


class CompiledStep(_CamelModel):
    index: int
    type: str
    label: Optional[str] = None
    # AI 专用 / 跳过的步骤没有 hints
    hints: Optional[StepHints] = None


class SourceInfo(_CamelModel):
    sha256: str
    compiled_at: str


class DeviceInfo(_CamelModel):
    window_width: float
    window_height: float
    orientation: str


class CompiledScenario(_CamelModel):
    version: int = COMPILED_FORMAT_VERSION
    source: SourceInfo
    device: DeviceInfo
    steps: List[CompiledStep]

    @property
    def step_types(self) -> List[str]:
        return [s.type for s in self.steps]


def compiled_path(scenario_path: str) -> str:
    return str(Path(scenario_path).with_suffix("")) + ".compiled.json"


def sha256_of(path: str) -> str:
    return hashlib.sha256(Path(path).read_bytes()).hexdigest()


def now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def device_info(window: WindowInfo) -> DeviceInfo:
    return DeviceInfo(window_width=window.width, window_height=window.height, orientation=window.orientation)


def save(compiled: CompiledScenario, scenario_path: str) -> str:
    path = Path(compiled_path(scenario_path))
    tmp = path.with_suffix(".json.tmp")
    tmp.write_text(compiled.model_dump_json(by_alias=True, exclude_none=True, indent=2), encoding="utf-8")
    tmp.replace(path)
    return str(path)


def load(scenario_path: str) -> Optional[CompiledScenario]:
    """读取编译产物；不存在返回 None，格式错误抛出 StaleCompiledArtifact。"""
    path = Path(compiled_path(scenario_path))
    if not path.is_file():
        return None
    try:
        return CompiledScenario.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        raise StaleCompiledArtifact(str(path), f"unreadable compiled artifact: {e}") from e


def check_staleness(
    compiled: CompiledScenario,
    scenario_path: str,
    window: Optional[WindowInfo],
    step_types: Optional[Sequence[str]] = None,
) -> Optional[str]:
    """返回过期原因；仍然有效时返回 None。"""
    if compiled.version != COMPILED_FORMAT_VERSION:
        return f"compiled version {compiled.version} != current {COMPILED_FORMAT_VERSION}"

    try:
        current_hash = sha256_of(scenario_path)
    except OSError as e:
        return f"cannot hash source file: {e}"
    if current_hash != compiled.source.sha256:
        return "source file has changed since compilation"

    if step_types is not None and list(step_types) != compiled.step_types:
        return "step sequence differs from source"

    if window is None:
        return "window info unavailable"
    if compiled.device.window_width != window.width or compiled.device.window_height != window.height:
        return (
            f"window dimensions changed: compiled {int(compiled.device.window_width)}x{int(compiled.device.window_height)}"
            f" vs current {int(window.width)}x{int(window.height)}"
        )
    return None


def load_fresh(
    scenario_path: str,
    window: Optional[WindowInfo],
    step_types: Optional[Sequence[str]] = None,
) -> Optional[CompiledScenario]:
    """读取并校验编译产物。

    Returns:
        有效的编译产物；没有编译产物时返回 None
    Raises:
        StaleCompiledArtifact: 产物存在但已过期
    """
    compiled = load(scenario_path)
    if compiled is None:
        return None
    reason = check_staleness(compiled, scenario_path, window, step_types)
    if reason:
        raise StaleCompiledArtifact(compiled_path(scenario_path), reason)
    return compiled
