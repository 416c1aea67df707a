from types import SimpleNamespace

from mirrorkit.core.constants import EventKind
from mirrorkit.modules.device.protocols import WindowInfo
from mirrorkit.modules.recorder import recorder as recorder_module
from mirrorkit.modules.recorder.classifier import ClassifierThresholds, Gesture
from mirrorkit.modules.recorder.recorder import EventRecorder

THRESHOLDS = ClassifierThresholds(tap_distance=10, swipe_distance=100, long_press_seconds=0.5)


def _recorder(fakes, clock, describer=None, window=WindowInfo(100, 50, 400, 800)):
    bridge = fakes.Bridge(window=window)
    return EventRecorder(bridge, describer, THRESHOLDS, label_max_distance=50, clock=clock)


def _key(name=None, char=None):
    return SimpleNamespace(name=name, char=char)


def test_tap_is_labelled_with_nearest_cached_element(fakes, clock):
    describer = fakes.Describer(fakes.screen(("General", 60.0, 60.0), ("Privacy", 20.0, 20.0)))
    rec = _recorder(fakes, clock, describer)

    rec.handle_mouse_down(150, 110)
    clock.sleep(0.1)
    gesture = rec.handle_mouse_up(151, 111)

    assert gesture.kind == Gesture.TAP
    event = rec.events[0]
    assert (event.kind, event.x, event.y, event.label) == (EventKind.TAP, 50, 60, "General")
    assert describer.calls == 1


def test_tap_beyond_label_radius_has_no_label(fakes, clock):
    describer = fakes.Describer(fakes.screen(("Far", 300.0, 700.0)))
    rec = _recorder(fakes, clock, describer)

    rec.handle_mouse_down(150, 110)
    rec.handle_mouse_up(150, 110)

    assert rec.events[0].label is None


def test_long_press_records_hold_duration(fakes, clock):
    rec = _recorder(fakes, clock)
    rec.handle_mouse_down(200, 200)
    clock.sleep(0.8)
    rec.handle_mouse_up(200, 200)

    event = rec.events[0]
    assert event.kind == EventKind.LONG_PRESS
    assert event.duration_ms == 800


def test_swipe_and_outside_window(fakes, clock):
    rec = _recorder(fakes, clock)

    rec.handle_mouse_down(300, 600)
    assert rec.handle_mouse_up(300, 300).direction == "up"

    rec.handle_mouse_down(5, 5)
    assert rec.handle_mouse_up(6, 6).kind == Gesture.IGNORED
    assert [e.kind for e in rec.events] == [EventKind.SWIPE]


def test_geometry_refreshed_on_every_event(fakes, clock):
    rec = _recorder(fakes, clock)
    rec.bridge.window = WindowInfo(1000, 0, 400, 800)

    rec.handle_mouse_down(1010, 10)
    rec.handle_mouse_up(1010, 10)

    assert (rec.events[0].x, rec.events[0].y) == (10, 10)


def test_scaled_mirror_window_records_device_coordinates(fakes, clock):
    describer = fakes.Describer(fakes.screen(("Wi-Fi", 410.0, 400.0), ("Decoy", 200.0, 200.0)))
    bridge = fakes.Bridge(window=WindowInfo(0, 0, 800, 1600), host_window=WindowInfo(200, 100, 400, 800))
    rec = EventRecorder(bridge, describer, THRESHOLDS, label_max_distance=50, clock=clock)

    rec.handle_mouse_down(400, 300)
    rec.handle_mouse_up(400, 300)
    rec.handle_mouse_down(150, 300)
    assert rec.handle_mouse_up(150, 300).kind == Gesture.IGNORED

    [event] = rec.events
    assert (event.kind, event.x, event.y, event.label) == (EventKind.TAP, 400, 400, "Wi-Fi")


def test_mouse_event_flushes_pending_text(fakes, clock):
    rec = _recorder(fakes, clock)
    rec.handle_key(char="h")
    rec.handle_key(char="i")
    rec.handle_mouse_down(200, 200)
    rec.handle_mouse_up(200, 200)

    assert [(e.kind, e.text) for e in rec.events] == [(EventKind.TYPE, "hi"), (EventKind.TAP, None)]


def test_pynput_keys_map_to_special_keys_and_modifiers(fakes, clock):
    rec = _recorder(fakes, clock)

    rec.handle_pynput_key(_key(char="a"), pressed=True)
    rec.handle_pynput_key(_key(name="enter"), pressed=True)
    rec.handle_pynput_key(_key(name="cmd_l"), pressed=True)
    rec.handle_pynput_key(_key(char="v"), pressed=True)
    rec.handle_pynput_key(_key(name="cmd_l"), pressed=False)
    rec.handle_pynput_key(_key(char="b"), pressed=True)

    events = rec.stop()
    assert [(e.kind, e.text, e.key, e.modifiers) for e in events] == [
        (EventKind.TYPE, "a", None, ()),
        (EventKind.PRESS_KEY, None, "return", ()),
        (EventKind.PRESS_KEY, None, "v", ("command",)),
        (EventKind.TYPE, "b", None, ()),
    ]


def test_stop_flushes_trailing_text(fakes, clock):
    rec = _recorder(fakes, clock)
    rec.handle_key(char="x")
    assert [e.text for e in rec.stop()] == ["x"]


def test_start_fails_without_window(fakes, clock):
    rec = _recorder(fakes, clock)
    rec.bridge.window = None
    rec.bridge.get_window_info = lambda: None
    assert rec.start() is False
    assert not rec.running


def test_callbacks_resolve_recorder_through_registry(fakes, clock):
    rec = _recorder(fakes, clock)
    rid = recorder_module.register(rec)
    left = SimpleNamespace(name="left")
    right = SimpleNamespace(name="right")

    recorder_module._on_click(rid, 200, 200, right, True)
    recorder_module._on_click(rid, 200, 200, left, True)
    recorder_module._on_click(rid, 200, 200, left, False, False)
    recorder_module._on_press(rid, _key(char="z"))
    recorder_module.unregister(rid)
    recorder_module._on_press(rid, _key(char="q"))

    assert recorder_module.lookup(rid) is None
    assert [e.kind for e in rec.stop()] == [EventKind.TAP, EventKind.TYPE]
    assert rec.events[-1].text == "z"
