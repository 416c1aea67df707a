import pytest

from mirrorkit.core.constants import CompiledAction, StepStatus
from mirrorkit.core.errors import StaleCompiledArtifact
from mirrorkit.modules.compiler import model
from mirrorkit.modules.compiler.compiler import RecordingDescriber, compile_scenario, parse_scroll_count
from mirrorkit.modules.executor.compiled_executor import CompiledStepExecutor
from mirrorkit.modules.executor.step_executor import StepExecutor
from mirrorkit.modules.scenario.parser import parse_file

SCENARIO = """\
name: Check About
description: open about page
steps:
  - launch: "Settings"
  - wait_for: "General"
  - tap: "general"
  - scroll_to: "About"
  - remember: "the version number"
  - assert_visible: "About"
"""


def _write(tmp_path, text=SCENARIO):
    path = tmp_path / "check-about.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def _executor(device, describer, config, clock):
    return StepExecutor(device.bridge, device.input, describer, device.capturer, config,
                        sleep=clock.sleep, clock=clock)


@pytest.mark.parametrize("message, expected", [
    ("already visible", 0),
    ("found after 3 scroll(s)", 3),
    ("compiled 12 scroll(s) up", 12),
    ("no number here", 0),
    (None, 0),
])
def test_parse_scroll_count(message, expected):
    assert parse_scroll_count(message) == expected


def test_recording_describer_caches_last_result(fakes):
    first, second = fakes.screen("A"), fakes.screen("B")
    recording = RecordingDescriber(fakes.Describer(first, second))

    assert recording.last_result is None
    recording.describe()
    recording.describe()
    assert recording.last_result is second
    assert recording.call_count == 2


def test_compile_builds_hints_per_step_kind(tmp_path, device, fast_config, clock, fakes):
    path = _write(tmp_path)
    definition = parse_file(str(path))
    device.describer = fakes.Describer(
        fakes.screen("General", "Privacy"),           # wait_for
        fakes.screen(("General", 30.0, 70.0)),        # tap
        fakes.screen("About"),                        # scroll_to: already visible
        fakes.screen("About"),                        # assert_visible
    )
    recording = RecordingDescriber(device.describer)

    compiled = compile_scenario(definition, _executor(device, recording, fast_config, clock), recording,
                                device.bridge.window)

    assert compiled is not None
    assert compiled.step_types == ["launch", "wait_for", "tap", "scroll_to", "remember", "assert_visible"]
    hints = [s.hints for s in compiled.steps]
    assert hints[0].compiled_action == CompiledAction.PASSTHROUGH
    assert hints[1].compiled_action == CompiledAction.SLEEP
    assert (hints[2].tap_x, hints[2].tap_y, hints[2].match_strategy) == (30.0, 70.0, "case-insensitive")
    assert hints[3].compiled_action == CompiledAction.SCROLL_SEQUENCE and hints[3].scroll_count == 0
    assert hints[4] is None
    assert hints[5].compiled_action == CompiledAction.SLEEP
    assert compiled.source.sha256 == model.sha256_of(str(path))
    assert compiled.device.window_width == 400


def test_compile_aborts_on_first_failure(tmp_path, device, fast_config, clock, fakes):
    definition = parse_file(str(_write(tmp_path)))
    device.describer = fakes.Describer(fakes.screen("Loading"))
    recording = RecordingDescriber(device.describer)
    seen = []

    compiled = compile_scenario(definition, _executor(device, recording, fast_config, clock), recording,
                                device.bridge.window, on_step=lambda i, total, step, r: seen.append(r.status))

    assert compiled is None
    assert seen == [StepStatus.PASSED, StepStatus.FAILED]


def test_replay_matches_live_outcome(tmp_path, device, fast_config, clock, fakes):
    path = _write(tmp_path)
    definition = parse_file(str(path))
    screens = (
        fakes.screen("General"),
        fakes.screen(("General", 30.0, 70.0)),
        fakes.screen("About"),
        fakes.screen("About"),
    )
    device.describer = fakes.Describer(*screens)
    recording = RecordingDescriber(device.describer)
    live = _executor(device, recording, fast_config, clock)
    compiled = compile_scenario(definition, live, recording, device.bridge.window)
    model.save(compiled, str(path))

    loaded = model.load_fresh(str(path), device.bridge.window, definition.step_types)
    replay_input = fakes.Input()
    device.input = replay_input
    device.describer = fakes.Describer(fakes.screen("About"))
    replay = CompiledStepExecutor(_executor(device, device.describer, fast_config, clock))

    results = [replay.execute(step, loaded.steps[i], i, definition.name) for i, step in enumerate(definition.steps)]

    assert [r.status for r in results] == [
        StepStatus.PASSED, StepStatus.PASSED, StepStatus.PASSED,
        StepStatus.PASSED, StepStatus.SKIPPED, StepStatus.PASSED,
    ]
    assert replay_input.named("tap") == [("tap", 30.0, 70.0)]
    assert replay_input.named("swipe") == []
    assert device.describer.calls == 0


def test_changed_source_is_rejected_before_replay(tmp_path, device, fast_config, clock, fakes):
    path = _write(tmp_path)
    definition = parse_file(str(path))
    device.describer = fakes.Describer(fakes.screen("General"), fakes.screen("General"), fakes.screen("About"))
    recording = RecordingDescriber(device.describer)
    compiled = compile_scenario(definition, _executor(device, recording, fast_config, clock), recording,
                                device.bridge.window)
    model.save(compiled, str(path))

    path.write_text(SCENARIO + '  - tap: "Version"\n', encoding="utf-8")

    with pytest.raises(StaleCompiledArtifact) as exc:
        model.load_fresh(str(path), device.bridge.window)
    assert exc.value.reason == "source file has changed since compilation"
