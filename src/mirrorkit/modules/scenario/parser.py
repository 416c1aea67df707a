"""
场景文件解析器（行式语法）

    name: Wi-Fi toggle
    description: 打开设置并检查 Wi-Fi
    steps:
      - launch: "Settings"
      - tap: "Wi-Fi"
      - home

每行是裸关键字或 `key: value`；值两端引号会被去掉。
未知键和 AI 专用键（remember / condition / repeat / verify / summarize）
解析为 Skipped，不报错。解析前先替换 ${VAR} / ${VAR:-default}。
"""
from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from ...core.constants import AI_ONLY_STEP_KEYS
from ...core.errors import ScenarioParseError
from .types import (
    AssertNotVisible,
    AssertVisible,
    Home,
    Launch,
    LongPress,
    Measure,
    OpenURL,
    PressKey,
    ResetApp,
    ScenarioDefinition,
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

AI_ONLY_REASON = "AI-only step - requires human interpretation"
UNKNOWN_REASON = "Unknown step type"

DEFAULT_SCROLL_MAX = 10

_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")
_MODIFIERS_PATTERN = re.compile(r"\s+modifiers:\s*\[")
_TIMEOUT_PATTERN = re.compile(r"\s+timeout:\s*")


def substitute_env_vars(content: str, env: Optional[Mapping[str, str]] = None) -> str:
    """替换 ${VAR} 和 ${VAR:-default}。

    环境变量存在时优先；否则使用默认值；都没有则原样保留占位符。
    """
    source = os.environ if env is None else env

    def _replace(match: re.Match) -> str:
        name, default = match.group(1), match.group(2)
        value = source.get(name)
        if value is not None:
            return value
        if default is not None:
            return default
        return match.group(0)

    return _ENV_PATTERN.sub(_replace, content)


def strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def strip_comment(value: str) -> str:
    """去掉引号外、前面有空白的 `# ...` 行尾注释。"""
    quote = ""
    escaped = False
    for i, ch in enumerate(value):
        if quote:
            if escaped:
                escaped = False
            elif ch == "\\" and quote == '"':
                escaped = True
            elif ch == quote:
                quote = ""
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "#" and (i == 0 or value[i - 1].isspace()):
            return value[:i].rstrip()
    return value


def _unescape(value: str) -> str:
    return value.replace('\\"', '"').replace("\\\\", "\\")


def _clean(raw: str) -> str:
    value = strip_comment(raw.strip())
    if value.startswith('"') and value.endswith('"') and len(value) >= 2:
        return _unescape(value[1:-1])
    return strip_quotes(value)


def _is_top_level(line: str) -> bool:
    return bool(line.strip()) and not line.startswith((" ", "\t"))


def parse_header(content: str) -> Dict[str, str]:
    """读取 steps: 之前的顶层 `key: value` 行（name / description / app）。"""
    header: Dict[str, str] = {}
    for line in content.splitlines():
        stripped = line.strip()
        if stripped == "steps:":
            break
        if not _is_top_level(line) or stripped.startswith("#") or ":" not in stripped:
            continue
        key, _, value = stripped.partition(":")
        key = key.strip()
        if key in ("name", "description", "app") and key not in header:
            header[key] = _clean(value)
    return header


def _list_block(content: str, block: str) -> Optional[List[tuple]]:
    """返回 `block:` 之下的列表项 (行号, 去掉 '- ' 的内容)；没有该块返回 None。"""
    lines = content.splitlines()
    items: Optional[List[tuple]] = None
    item_indent: Optional[int] = None
    for index, line in enumerate(lines):
        stripped = line.strip()
        if items is None:
            if stripped == f"{block}:" and _is_top_level(line):
                items = []
            continue
        if stripped.startswith("- ") or stripped == "-":
            indent = len(line) - len(line.lstrip())
            if item_indent is None:
                item_indent = indent
            # 嵌套列表（condition / repeat 的子步骤）不属于确定性步骤
            if indent > item_indent:
                continue
            items.append((index, stripped[2:] if stripped != "-" else ""))
        elif _is_top_level(line) and not stripped.startswith("#"):
            # 非缩进的非列表行：steps 块结束
            break
    return items


def parse_targets(content: str) -> List[str]:
    items = _list_block(content, "targets") or []
    return [_clean(raw) for _, raw in items if _clean(raw)]


def _block_scalar(lines: List[str], start: int, keep_trailing: bool) -> tuple:
    """读取 `key: |` 之后缩进更深的多行文本，返回 (文本, 最后一行行号)。"""
    item_indent = len(lines[start]) - len(lines[start].lstrip())
    body: List[str] = []
    end = start
    for offset, line in enumerate(lines[start + 1:], start + 1):
        if line.strip() and len(line) - len(line.lstrip()) <= item_indent:
            break
        body.append(line)
        end = offset
    while body and not body[-1].strip():
        body.pop()
    indents = [len(line) - len(line.lstrip()) for line in body if line.strip()]
    cut = min(indents) if indents else 0
    text = "\n".join(line[cut:] for line in body)
    return (text + "\n" if keep_trailing and text else text), end


def parse_steps(content: str, *, default_scroll_max: int = DEFAULT_SCROLL_MAX) -> List[ScenarioStep]:
    items = _list_block(content, "steps")
    if items is None:
        return []
    lines = content.splitlines()
    steps: List[ScenarioStep] = []
    consumed = -1
    for index, raw in items:
        if index <= consumed:
            continue
        key, sep, value = raw.partition(":")
        marker = value.strip()
        if sep and marker in ("|", "|-"):
            text, consumed = _block_scalar(lines, index, keep_trailing=marker == "|")
            raw = f"{key}: {_quote(text)}"
        step = parse_step(raw, default_scroll_max=default_scroll_max)
        if step is not None:
            steps.append(step)
    return steps


def _quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def parse_step(raw: str, *, default_scroll_max: int = DEFAULT_SCROLL_MAX) -> Optional[ScenarioStep]:
    """解析单个步骤，如 `tap: "General"` 或 `home`。空行返回 None。"""
    trimmed = strip_comment(raw.strip())
    if not trimmed:
        return None

    # 裸关键字
    if trimmed in ("home", "press_home"):
        return Home()
    if trimmed == "shake":
        return Shake()

    if ":" not in trimmed:
        return Skipped(step_type=trimmed, reason=UNKNOWN_REASON)

    key, _, raw_value = trimmed.partition(":")
    key = key.strip()
    raw_value = raw_value.strip()
    value = _clean(raw_value)

    if key == "launch":
        return Launch(app_name=value)
    if key == "tap":
        return Tap(target=value)
    if key == "type":
        return TypeText(text=value)
    if key == "press_key":
        return _parse_press_key(raw_value)
    if key == "swipe":
        return Swipe(direction=value)
    if key == "wait_for":
        return _parse_wait_for(raw_value)
    if key == "assert_visible":
        return AssertVisible(target=value)
    if key == "assert_not_visible":
        return AssertNotVisible(target=value)
    if key == "screenshot":
        return Screenshot(name=value)
    if key in ("home", "press_home"):
        return Home()
    if key == "open_url":
        return OpenURL(url=value)
    if key == "shake":
        return Shake()
    if key == "scroll_to":
        return ScrollTo(target=value, direction="up", max_scrolls=default_scroll_max)
    if key == "long_press":
        return LongPress(target=value)
    if key == "reset_app":
        return ResetApp(app_name=value)
    if key == "target":
        return SwitchTarget(name=value)
    if key == "measure":
        return _parse_measure(raw_value, default_scroll_max)
    if key in AI_ONLY_STEP_KEYS:
        return Skipped(step_type=key, reason=AI_ONLY_REASON)
    return Skipped(step_type=key, reason=UNKNOWN_REASON)


def _parse_press_key(raw_value: str) -> PressKey:
    """支持 `"return"`、`"l" modifiers: ["command"]`、`"l+command"` 三种写法。"""
    value = strip_comment(raw_value)
    match = _MODIFIERS_PATTERN.search(value)
    if match and "]" in value[match.end():]:
        key = _clean(value[:match.start()])
        inner = value[match.end():value.index("]", match.end())]
        modifiers = tuple(m for m in (_clean(p) for p in inner.split(",")) if m)
        return PressKey(key=key, modifiers=modifiers)

    value = _clean(value)
    if "+" in value and len(value) > 1:
        parts = [p.strip() for p in value.split("+")]
        return PressKey(key=parts[0], modifiers=tuple(p for p in parts[1:] if p))
    return PressKey(key=value)


def _parse_wait_for(raw_value: str) -> WaitFor:
    """支持 `"General"` 与 `"General" timeout: 30`。"""
    value = strip_comment(raw_value)
    match = _TIMEOUT_PATTERN.search(value)
    if match:
        label = _clean(value[:match.start()])
        timeout_str = value[match.end():].strip()
        timeout = int(timeout_str) if timeout_str.isdigit() else None
        return WaitFor(target=label, timeout_seconds=timeout)
    return WaitFor(target=_clean(value))


def _parse_measure(raw_value: str, default_scroll_max: int) -> Measure:
    """`{ tap: "Login", until: "Dashboard", max: 5, name: "login_time" }`"""
    inner = strip_comment(raw_value).strip()
    if inner.startswith("{") and inner.endswith("}"):
        inner = inner[1:-1]

    action: Optional[ScenarioStep] = None
    until = ""
    max_seconds: Optional[float] = None
    name = "measure"

    for part in (p.strip() for p in inner.split(",")):
        if ":" not in part:
            continue
        key, _, val = part.partition(":")
        key = key.strip()
        stripped = _clean(val)
        if key == "until":
            until = stripped
        elif key == "max":
            try:
                max_seconds = float(stripped)
            except ValueError:
                max_seconds = None
        elif key == "name":
            name = stripped
        else:
            action = parse_step(part, default_scroll_max=default_scroll_max)

    if action is None:
        action = Skipped(step_type="measure", reason="No action found in measure step")
    return Measure(name=name, action=action, until=until, max_seconds=max_seconds)


def parse_content(
    content: str,
    file_path: str = "<inline>",
    *,
    default_scroll_max: int = DEFAULT_SCROLL_MAX,
) -> ScenarioDefinition:
    """解析已完成变量替换的场景文本。"""
    fallback_name = Path(file_path).name
    if fallback_name.endswith(".yaml"):
        fallback_name = fallback_name[: -len(".yaml")]
    header = parse_header(content)
    return ScenarioDefinition(
        name=header.get("name") or fallback_name,
        description=header.get("description", ""),
        file_path=file_path,
        steps=tuple(parse_steps(content, default_scroll_max=default_scroll_max)),
        app=header.get("app", ""),
        targets=tuple(parse_targets(content)),
    )


def parse_file(
    path: str,
    *,
    env: Optional[Mapping[str, str]] = None,
    default_scroll_max: int = DEFAULT_SCROLL_MAX,
) -> ScenarioDefinition:
    """读取并解析场景文件。

    Raises:
        ScenarioParseError: 文件无法读取，或缺少 steps: 块
    """
    try:
        content = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ScenarioParseError(path, f"cannot read file: {e}") from e

    if _list_block(content, "steps") is None:
        raise ScenarioParseError(path, "missing 'steps:' block")

    substituted = substitute_env_vars(content, env)
    return parse_content(substituted, path, default_scroll_max=default_scroll_max)
