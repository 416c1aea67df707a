import os

import pytest

from mirrorkit.core.errors import ScenarioResolveError
from mirrorkit.modules.scenario.loader import (
    ScenarioLoader,
    discover_scenario_files,
    resolve_scenario_files,
)


def _touch(path, text="name: x\nsteps:\n  - home\n"):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_discover_dedupes_by_relative_path(tmp_path):
    first = tmp_path / "a"
    second = tmp_path / "b"
    _touch(first / "apps" / "mail.yaml")
    _touch(second / "apps" / "mail.yaml")
    _touch(second / "notes.yaml")

    files = discover_scenario_files([str(first), str(second), str(tmp_path / "missing")])

    assert files == [str(first / "apps" / "mail.yaml"), str(second / "notes.yaml")]


def test_resolve_paths_globs_and_names(tmp_path):
    dirs = [str(tmp_path / "scenarios")]
    direct = _touch(tmp_path / "direct.yaml")
    _touch(tmp_path / "scenarios" / "apps" / "check-about.yaml")
    _touch(tmp_path / "glob" / "one.yaml")
    _touch(tmp_path / "glob" / "two.yaml")

    files = resolve_scenario_files(
        [str(direct), str(tmp_path / "glob" / "*.yaml"), "check-about"], dirs)

    assert files == [
        str(direct),
        str(tmp_path / "glob" / "one.yaml"),
        str(tmp_path / "glob" / "two.yaml"),
        str(tmp_path / "scenarios" / "apps" / "check-about.yaml"),
    ]


def test_resolve_errors(tmp_path):
    dirs = [str(tmp_path)]
    _touch(tmp_path / "x" / "dup.yaml")
    _touch(tmp_path / "y" / "dup.yaml")

    with pytest.raises(ScenarioResolveError, match="Ambiguous"):
        resolve_scenario_files(["dup"], dirs)
    with pytest.raises(ScenarioResolveError, match="not found"):
        resolve_scenario_files(["nothing"], dirs)
    with pytest.raises(ScenarioResolveError, match="No scenarios match"):
        resolve_scenario_files([str(tmp_path / "*.none.yaml")], dirs)


def test_loader_reparses_after_modification(tmp_path):
    path = _touch(tmp_path / "flow.yaml")
    loader = ScenarioLoader()

    first = loader.load(str(path))
    assert loader.load(str(path)) is first

    _touch(path, 'name: x\nsteps:\n  - tap: "OK"\n')
    stat = os.stat(path)
    os.utime(path, (stat.st_atime, stat.st_mtime + 5))

    assert loader.load(str(path)).step_types == ("tap",)
