from mirrorkit.modules.recorder.classifier import RecordedEvent
from mirrorkit.modules.recorder.generator import generate_scenario_text, step_lines
from mirrorkit.modules.scenario.parser import parse_content
from mirrorkit.modules.scenario.types import LongPress, PressKey, Swipe, Tap, TypeText


def test_unlabelled_tap_gets_placeholder_and_coordinates():
    assert step_lines(RecordedEvent.tap(0, 12.7, 40.2, None)) == [
        '- tap: "FIXME"  # at (12, 40) - replace with visible text label'
    ]


def test_long_press_comment_includes_hold_time():
    lines = step_lines(RecordedEvent.long_press(0, 10, 20, "Photo", 900))
    assert lines == ['- long_press: "Photo"  # at (10, 20), held 900ms']


def test_multiline_text_uses_block_scalar():
    assert step_lines(RecordedEvent.typed(0, "first\nsecond")) == [
        "- type: |",
        "    first",
        "    second",
    ]


def test_header_layout():
    text = generate_scenario_text([RecordedEvent.swipe(0, "left")], "Demo", "walkthrough", app="Settings")
    assert text == (
        "name: Demo\n"
        "app: Settings\n"
        "description: walkthrough\n"
        "\n"
        "steps:\n"
        '  - swipe: "left"\n'
    )


def test_generated_text_parses_back_into_steps():
    events = [
        RecordedEvent.tap(0, 50, 60, "General"),
        RecordedEvent.long_press(1, 10, 10, None, 700),
        RecordedEvent.swipe(2, "up"),
        RecordedEvent.typed(3, 'say "hi"'),
        RecordedEvent.typed(4, "hello\nworld"),
        RecordedEvent.press_key(5, "v", ["shift", "command"]),
    ]

    definition = parse_content(generate_scenario_text(events, "Recorded"), "recorded.yaml")

    assert definition.name == "Recorded"
    assert definition.steps == (
        Tap(target="General"),
        LongPress(target="FIXME"),
        Swipe(direction="up"),
        TypeText(text='say "hi"'),
        TypeText(text="hello\nworld\n"),
        PressKey(key="v", modifiers=("command", "shift")),
    )
