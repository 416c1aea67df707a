from mirrorkit.core.constants import StepStatus
from mirrorkit.modules.compiler.model import CompiledStep, StepHints
from mirrorkit.modules.executor.compiled_executor import CompiledStepExecutor
from mirrorkit.modules.executor.step_executor import StepExecutor
from mirrorkit.modules.scenario.types import AssertVisible, Launch, ScrollTo, Skipped, Tap, WaitFor


def _compiled_executor(device, config, clock):
    live = StepExecutor(device.bridge, device.input, device.describer, device.capturer, config,
                        sleep=clock.sleep, clock=clock)
    return CompiledStepExecutor(live)


def _step(step, index, hints):
    return CompiledStep(index=index, type=step.type_key, label=step.label, hints=hints)


def test_tap_replays_cached_coordinates_without_ocr(device, fast_config, clock, fakes):
    device.describer = fakes.Describer(fakes.screen("Other"))
    executor = _compiled_executor(device, fast_config, clock)
    step = Tap("Wi-Fi")

    result = executor.execute(step, _step(step, 0, StepHints.tap(12.5, 40.0, 0.95, "case-insensitive")), 0, "demo")

    assert result.passed
    assert result.message == "compiled tap via case-insensitive"
    assert device.input.named("tap") == [("tap", 12.5, 40.0)]
    assert device.describer.calls == 0


def test_sleep_adds_safety_buffer(device, fast_config, clock):
    executor = _compiled_executor(device, fast_config, clock)
    step = WaitFor("Done")

    result = executor.execute(step, _step(step, 0, StepHints.sleep(1300)), 0, "demo")

    assert result.message == "compiled sleep 1500ms"
    assert clock.sleeps[0] == 1.5


def test_scroll_sequence_replays_swipes_without_checks(device, fast_config, clock, fakes):
    device.describer = fakes.Describer(fakes.screen("Nothing"))
    executor = _compiled_executor(device, fast_config, clock)
    step = ScrollTo("About")

    result = executor.execute(step, _step(step, 0, StepHints.scroll_sequence(3, "up")), 0, "demo")

    assert result.message == "compiled 3 scroll(s) up"
    assert len(device.input.named("swipe")) == 3
    assert device.describer.calls == 0


def test_zero_scrolls_issue_no_swipes(device, fast_config, clock):
    executor = _compiled_executor(device, fast_config, clock)
    step = ScrollTo("About")

    result = executor.execute(step, _step(step, 0, StepHints.scroll_sequence(0, "up")), 0, "demo")

    assert result.message == "compiled scroll: already visible"
    assert device.input.named("swipe") == []


def test_passthrough_and_missing_hints_run_live(device, fast_config, clock, fakes):
    device.describer = fakes.Describer(fakes.screen("Inbox"))
    executor = _compiled_executor(device, fast_config, clock)

    launch = Launch("Mail")
    assert executor.execute(launch, _step(launch, 0, StepHints.passthrough()), 0, "demo").passed
    assert device.input.named("launch_app") == [("launch_app", "Mail")]

    check = AssertVisible("Inbox")
    assert executor.execute(check, None, 1, "demo").passed
    assert device.describer.calls == 1


def test_skipped_step_without_hints_stays_skipped(device, fast_config, clock):
    executor = _compiled_executor(device, fast_config, clock)
    step = Skipped("condition", "AI-only")
    result = executor.execute(step, _step(step, 0, None), 0, "demo")
    assert result.status == StepStatus.SKIPPED


def test_type_mismatch_fails_step(device, fast_config, clock):
    executor = _compiled_executor(device, fast_config, clock)
    hints = CompiledStep(index=0, type="tap", label="Wi-Fi", hints=StepHints.sleep(100))
    result = executor.execute(WaitFor("Wi-Fi"), hints, 0, "demo")
    assert result.status == StepStatus.FAILED
    assert "does not match" in result.message


def test_compiled_tap_transport_error(device, fast_config, clock):
    device.input.errors["tap"] = "adb: device offline"
    executor = _compiled_executor(device, fast_config, clock)
    step = Tap("Wi-Fi")
    result = executor.execute(step, _step(step, 0, StepHints.tap(1, 2, 0.9, "exact")), 0, "demo")
    assert result.status == StepStatus.FAILED
    assert result.message == "adb: device offline"
