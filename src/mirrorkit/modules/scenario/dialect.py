"""
AI / 人工操作员方言

condition / repeat 等复合结构只在这里建模为独立的 AST，并渲染成编号的自然语言指令，
交给 AI 代理或操作员解释。确定性执行器永远不消费这些节点。

    steps:
      - condition:
          if_visible: "Unread"
          then:
            - tap: "Unread"
          else:
            - screenshot: "empty_inbox"
      - repeat:
          while_visible: "Unread"
          max: 20
          steps:
            - tap: "Archive"
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Union

import yaml

from ...core.errors import ScenarioParseError
from .parser import substitute_env_vars

DEFAULT_REPEAT_MAX = 10


@dataclass(frozen=True)
class ActionNode:
    key: str
    value: str = ""


@dataclass(frozen=True)
class ConditionNode:
    if_visible: str
    then: List["DialectNode"] = field(default_factory=list)
    else_: List["DialectNode"] = field(default_factory=list)


@dataclass(frozen=True)
class RepeatNode:
    while_visible: str
    max: int = DEFAULT_REPEAT_MAX
    steps: List["DialectNode"] = field(default_factory=list)


DialectNode = Union[ActionNode, ConditionNode, RepeatNode]


def _to_node(item: Any) -> DialectNode:
    if isinstance(item, str):
        return ActionNode(key=item.strip())
    if not isinstance(item, dict) or len(item) != 1:
        raise ValueError(f"无法识别的步骤: {item!r}")

    key, value = next(iter(item.items()))
    if key in ("condition", "repeat") and value is not None and not isinstance(value, dict):
        raise ValueError(f"{key} 的内容必须是映射")
    if key == "condition":
        body = value or {}
        return ConditionNode(
            if_visible=str(body.get("if_visible", "")),
            then=_to_nodes(body.get("then")),
            else_=_to_nodes(body.get("else")),
        )
    if key == "repeat":
        body = value or {}
        try:
            max_count = int(body.get("max", DEFAULT_REPEAT_MAX))
        except (TypeError, ValueError):
            max_count = DEFAULT_REPEAT_MAX
        return RepeatNode(
            while_visible=str(body.get("while_visible", "")),
            max=max_count,
            steps=_to_nodes(body.get("steps")),
        )
    return ActionNode(key=str(key), value="" if value is None else str(value))


def _to_nodes(items: Any) -> List[DialectNode]:
    if not items:
        return []
    if not isinstance(items, list):
        raise ValueError("steps 必须是列表")
    return [_to_node(item) for item in items]


def parse_dialect(content: str, file_path: str = "<inline>") -> List[DialectNode]:
    """用 YAML 加载场景并构建方言 AST。

    Raises:
        ScenarioParseError: YAML 非法或步骤结构无法识别
    """
    try:
        doc = yaml.safe_load(substitute_env_vars(content))
    except yaml.YAMLError as e:
        raise ScenarioParseError(file_path, f"invalid YAML: {e}") from e
    if not isinstance(doc, dict):
        raise ScenarioParseError(file_path, "top level must be a mapping")
    try:
        return _to_nodes(doc.get("steps"))
    except ValueError as e:
        raise ScenarioParseError(file_path, str(e)) from e


def _describe_action(node: ActionNode) -> str:
    if not node.value:
        return node.key.replace("_", " ").capitalize()
    if node.key == "launch":
        return f"Launch **{node.value}**"
    if node.key == "wait_for":
        return f'Wait for "{node.value}" to appear'
    if node.key == "remember":
        return f"Remember: {node.value}"
    return f'{node.key.replace("_", " ").capitalize()}: "{node.value}"'


def render_instructions(nodes: List[DialectNode], indent: int = 0, start: int = 1) -> List[str]:
    """把方言 AST 渲染成编号的自然语言指令行。"""
    prefix = " " * indent
    lines: List[str] = []
    for number, node in enumerate(nodes, start):
        if isinstance(node, ConditionNode):
            lines.append(f'{prefix}{number}. If "{node.if_visible}" is visible:')
            lines.extend(render_instructions(node.then, indent + 3))
            if node.else_:
                lines.append(f"{prefix}   Otherwise:")
                lines.extend(render_instructions(node.else_, indent + 3))
        elif isinstance(node, RepeatNode):
            lines.append(f'{prefix}{number}. Repeat while "{node.while_visible}" is visible (max {node.max}):')
            lines.extend(render_instructions(node.steps, indent + 3))
        else:
            lines.append(f"{prefix}{number}. {_describe_action(node)}")
    return lines