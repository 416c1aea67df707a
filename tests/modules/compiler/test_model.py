import json

import pytest

from mirrorkit.core.constants import COMPILED_FORMAT_VERSION
from mirrorkit.core.errors import StaleCompiledArtifact
from mirrorkit.modules.compiler import model
from mirrorkit.modules.compiler.model import CompiledScenario, CompiledStep, StepHints
from mirrorkit.modules.device.protocols import WindowInfo

WINDOW = WindowInfo(0, 0, 400, 800)


def _scenario(tmp_path, text='name: x\nsteps:\n  - tap: "OK"\n'):
    path = tmp_path / "flow.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def _compiled(path, **overrides):
    data = dict(
        source=model.SourceInfo(sha256=model.sha256_of(str(path)), compiled_at=model.now_iso()),
        device=model.device_info(WINDOW),
        steps=[CompiledStep(index=0, type="tap", label="OK", hints=StepHints.tap(10, 20, 0.9, "exact"))],
    )
    data.update(overrides)
    return CompiledScenario(**data)


def test_compiled_path_sits_next_to_source():
    assert model.compiled_path("scenarios/login.yaml") == "scenarios/login.compiled.json"


def test_saved_json_uses_camel_case_and_omits_empty_hints(tmp_path):
    path = _scenario(tmp_path)
    out = model.save(_compiled(path), str(path))

    doc = json.loads(open(out, encoding="utf-8").read())
    assert doc["version"] == COMPILED_FORMAT_VERSION
    assert doc["device"] == {"windowWidth": 400.0, "windowHeight": 800.0, "orientation": "portrait"}
    assert doc["steps"][0]["hints"] == {
        "compiledAction": "tap", "tapX": 10.0, "tapY": 20.0, "confidence": 0.9, "matchStrategy": "exact",
    }
    assert "compiledAt" in doc["source"]


def test_load_returns_none_without_artifact(tmp_path):
    assert model.load(str(_scenario(tmp_path))) is None


def test_load_rejects_corrupt_artifact(tmp_path):
    path = _scenario(tmp_path)
    (tmp_path / "flow.compiled.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(StaleCompiledArtifact):
        model.load(str(path))


def test_fresh_artifact_loads(tmp_path):
    path = _scenario(tmp_path)
    model.save(_compiled(path), str(path))
    loaded = model.load_fresh(str(path), WINDOW, ["tap"])
    assert loaded.steps[0].hints.tap_x == 10


def test_staleness_reasons(tmp_path):
    path = _scenario(tmp_path)
    compiled = _compiled(path)

    assert model.check_staleness(compiled, str(path), WINDOW, ["tap"]) is None
    assert model.check_staleness(compiled.model_copy(update={"version": 99}), str(path), WINDOW).startswith(
        "compiled version 99")
    assert model.check_staleness(compiled, str(path), WINDOW, ["launch"]) == "step sequence differs from source"
    assert model.check_staleness(compiled, str(path), None) == "window info unavailable"
    assert model.check_staleness(compiled, str(path), WindowInfo(0, 0, 800, 400)) == (
        "window dimensions changed: compiled 400x800 vs current 800x400")


def test_load_fresh_raises_for_stale_artifact(tmp_path):
    path = _scenario(tmp_path)
    model.save(_compiled(path), str(path))
    with pytest.raises(StaleCompiledArtifact) as exc:
        model.load_fresh(str(path), WindowInfo(0, 0, 100, 100))
    assert exc.value.path.endswith("flow.compiled.json")
