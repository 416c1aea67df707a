import pytest

from mirrorkit.core.errors import ScenarioParseError
from mirrorkit.modules.scenario.dialect import (
    ActionNode,
    ConditionNode,
    RepeatNode,
    parse_dialect,
    render_instructions,
)
from mirrorkit.modules.scenario.parser import parse_content
from mirrorkit.modules.scenario.types import Skipped

CONTENT = """\
name: Inbox cleanup
steps:
  - launch: "Mail"
  - condition:
      if_visible: "Unread"
      then:
        - tap: "Unread"
      else:
        - screenshot: "empty"
  - repeat:
      while_visible: "Archive"
      max: 3
      steps:
        - tap: "Archive"
  - home
"""


def test_builds_separate_ast():
    nodes = parse_dialect(CONTENT)

    assert nodes == [
        ActionNode("launch", "Mail"),
        ConditionNode("Unread", [ActionNode("tap", "Unread")], [ActionNode("screenshot", "empty")]),
        RepeatNode("Archive", 3, [ActionNode("tap", "Archive")]),
        ActionNode("home"),
    ]


def test_deterministic_parser_never_lowers_control_flow():
    steps = parse_content(CONTENT).steps
    assert [s.type_key for s in steps] == ["launch", "condition", "repeat", "home"]
    assert isinstance(steps[1], Skipped) and isinstance(steps[2], Skipped)


def test_render_numbered_instructions():
    lines = render_instructions(parse_dialect(CONTENT))

    assert lines == [
        "1. Launch **Mail**",
        '2. If "Unread" is visible:',
        '   1. Tap: "Unread"',
        "   Otherwise:",
        '   1. Screenshot: "empty"',
        '3. Repeat while "Archive" is visible (max 3):',
        '   1. Tap: "Archive"',
        "4. Home",
    ]


def test_invalid_yaml_raises_parse_error():
    with pytest.raises(ScenarioParseError):
        parse_dialect("steps: [unclosed", "bad.yaml")


def test_bad_condition_shape():
    with pytest.raises(ScenarioParseError):
        parse_dialect("steps:\n  - condition: just text\n")
