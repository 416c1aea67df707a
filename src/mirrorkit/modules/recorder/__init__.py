from .classifier import (
    ClassifierThresholds,
    Gesture,
    KeyBuffer,
    MouseGesture,
    RecordedEvent,
    classify_mouse,
)
from .recorder import EventRecorder
from .generator import generate_scenario_text

__all__ = [
    "ClassifierThresholds",
    "Gesture",
    "KeyBuffer",
    "MouseGesture",
    "RecordedEvent",
    "classify_mouse",
    "EventRecorder",
    "generate_scenario_text",
]
