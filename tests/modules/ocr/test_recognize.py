import base64
import threading

import numpy as np
import pytest

from mirrorkit.modules.ocr import recognize
from mirrorkit.modules.ocr.recognize import OcrScreenDescriber, decode_base64_png, load_image
from mirrorkit.modules.ocr.types import DetectedElement


class FakeEngine:
    def __init__(self, result):
        self.result = result
        self.images = []

    def predict(self, img):
        self.images.append(img)
        return [self.result]


@pytest.fixture()
def engine(monkeypatch):
    fake = FakeEngine({
        "rec_texts": ["General", "  ", "faint"],
        "rec_scores": [0.98, 0.99, 0.2],
        "rec_polys": [
            [(100, 200), (300, 200), (300, 240), (100, 240)],
            [(0, 0), (1, 0), (1, 1), (0, 1)],
            [(0, 0), (10, 0), (10, 10), (0, 10)],
        ],
    })
    monkeypatch.setattr(recognize, "acquire_ocr", lambda: (fake, threading.Lock()))
    return fake


def test_ocr_filters_and_scales_boxes(engine):
    image = np.zeros((10, 10, 3), dtype=np.uint8)

    elements = recognize.ocr(image, min_confidence=0.5, scale=2.0)

    assert elements == [DetectedElement(text="General", x=100.0, y=110.0, confidence=0.98)]
    assert engine.images[0] is image


def test_describer_returns_none_without_screenshot(fakes):
    assert OcrScreenDescriber(fakes.Capturer(data="")).describe() is None
    assert OcrScreenDescriber(fakes.Capturer(data="%%not-base64%%")).describe() is None


def test_describer_runs_ocr_on_capture(monkeypatch, fakes):
    seen = {}

    def _ocr(raw, *, min_confidence, scale):
        seen.update(raw=raw, min_confidence=min_confidence, scale=scale)
        return [DetectedElement("About", 10, 20, 0.9)]

    monkeypatch.setattr(recognize, "ocr", _ocr)
    capturer = fakes.Capturer()

    result = OcrScreenDescriber(capturer, min_confidence=0.7).describe()

    assert result.texts == ["About"]
    assert result.screenshot == capturer.data
    assert seen["raw"] == base64.b64decode(capturer.data)
    assert seen["min_confidence"] == 0.7


def test_describer_survives_undecodable_image(monkeypatch, fakes):
    def _ocr(raw, **kwargs):
        raise ValueError("Failed to decode image bytes")

    monkeypatch.setattr(recognize, "ocr", _ocr)
    assert OcrScreenDescriber(fakes.Capturer()).describe() is None


def test_load_image_rejects_missing_path(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_image(str(tmp_path / "nope.png"))
    with pytest.raises(TypeError):
        load_image(42)


def test_decode_base64_png():
    assert decode_base64_png(base64.b64encode(b"abc").decode()) == b"abc"
    assert decode_base64_png("***") is None


def test_element_from_box_clamps_confidence():
    element = DetectedElement.from_box("OK", 1.7, [(0, 0), (4, 0), (4, 2), (0, 2)])
    assert (element.x, element.y, element.confidence) == (2.0, 1.0, 1.0)


class BrokenEngine:
    def predict(self, img):
        raise RuntimeError("paddle inference failed")


def test_describer_returns_none_when_engine_predict_fails(monkeypatch, fakes):
    monkeypatch.setattr(recognize, "acquire_ocr", lambda: (BrokenEngine(), threading.Lock()))
    monkeypatch.setattr(recognize, "load_image", lambda raw: np.zeros((4, 4, 3), dtype=np.uint8))

    assert OcrScreenDescriber(fakes.Capturer()).describe() is None


def test_describer_returns_none_when_engine_missing(monkeypatch, fakes):
    def _missing():
        raise ModuleNotFoundError("No module named 'paddleocr'")

    monkeypatch.setattr(recognize, "acquire_ocr", _missing)
    assert OcrScreenDescriber(fakes.Capturer()).describe() is None
