"""录制事件 → 场景文本。生成结果可直接被场景解析器读取。"""
from __future__ import annotations

from typing import List, Optional, Sequence

from ...core.constants import EventKind
from .classifier import RecordedEvent

FIXME_LABEL = "FIXME"
FIXME_HINT = "replace with visible text label"


def escape_text(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _coords(event: RecordedEvent) -> str:
    return f"# at ({int(event.x)}, {int(event.y)})"


def step_lines(event: RecordedEvent) -> List[str]:
    """单个事件对应的步骤行（不含缩进）。"""
    if event.kind == EventKind.TAP:
        if event.label:
            return [f'- tap: "{escape_text(event.label)}"  {_coords(event)}']
        return [f'- tap: "{FIXME_LABEL}"  {_coords(event)} - {FIXME_HINT}']

    if event.kind == EventKind.LONG_PRESS:
        comment = f"{_coords(event)}, held {event.duration_ms}ms"
        if event.label:
            return [f'- long_press: "{escape_text(event.label)}"  {comment}']
        return [f'- long_press: "{FIXME_LABEL}"  {comment} - {FIXME_HINT}']

    if event.kind == EventKind.SWIPE:
        return [f'- swipe: "{event.direction}"']

    if event.kind == EventKind.TYPE:
        text = event.text or ""
        if "\n" in text:
            return ["- type: |"] + [f"    {line}" for line in text.split("\n")]
        return [f'- type: "{escape_text(text)}"']

    if event.kind == EventKind.PRESS_KEY:
        parts = [event.key or "unknown", *event.modifiers]
        return [f'- press_key: "{escape_text("+".join(parts))}"']

    return []


def generate_scenario_text(
    events: Sequence[RecordedEvent],
    name: str,
    description: str = "",
    app: Optional[str] = None,
) -> str:
    lines = [f"name: {name}"]
    if app:
        lines.append(f"app: {app}")
    lines.append(f"description: {description}")
    lines.append("")
    lines.append("steps:")
    for event in events:
        lines.extend(f"  {line}" for line in step_lines(event))
    return "\n".join(lines) + "\n"
