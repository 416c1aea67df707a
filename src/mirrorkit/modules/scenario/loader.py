"""
场景文件定位与加载

- resolve_scenario_files: 命令行参数（路径 / glob / 场景名）→ 文件列表
- ScenarioLoader: 解析结果按文件修改时间缓存，文件变更后自动重新解析
"""
from __future__ import annotations

import glob
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from ...core.errors import ScenarioResolveError
from ...core.logger import logger
from .parser import DEFAULT_SCROLL_MAX, parse_file
from .types import ScenarioDefinition


@dataclass
class _CacheEntry:
    definition: ScenarioDefinition
    mtime: float


class ScenarioLoader:
    """场景加载器（带 mtime 缓存）"""

    def __init__(self, default_scroll_max: int = DEFAULT_SCROLL_MAX) -> None:
        self.default_scroll_max = default_scroll_max
        self._cache: Dict[str, _CacheEntry] = {}
        self._log = logger.bind(module="ScenarioLoader")

    def load(self, path: str) -> ScenarioDefinition:
        """加载场景；解析失败抛出 ScenarioParseError。"""
        key = os.path.abspath(path)
        try:
            current_mtime = os.path.getmtime(path)
        except OSError:
            current_mtime = -1.0

        cached = self._cache.get(key)
        # 缓存命中且文件未修改
        if cached and cached.mtime == current_mtime:
            return cached.definition

        definition = parse_file(path, default_scroll_max=self.default_scroll_max)
        self._cache[key] = _CacheEntry(definition=definition, mtime=current_mtime)
        self._log.debug("场景已加载: {} ({} 步)", path, len(definition.steps))
        return definition


def find_yaml_files(directory: str) -> List[str]:
    """返回目录下所有 .yaml 文件的相对路径（排序）。"""
    root = Path(directory)
    if not root.is_dir():
        return []
    return sorted(p.relative_to(root).as_posix() for p in root.rglob("*.yaml"))


def discover_scenario_files(dirs: Iterable[str]) -> List[str]:
    """按目录顺序发现全部场景；相对路径相同的文件只取第一个。"""
    files: List[str] = []
    seen = set()
    for directory in dirs:
        for rel in find_yaml_files(directory):
            if rel in seen:
                continue
            seen.add(rel)
            files.append(str(Path(directory) / rel))
    return files


def _resolve_name(name: str, dirs: Sequence[str]) -> Optional[str]:
    stem = name[:-len(".yaml")] if name.endswith(".yaml") else name
    matches: List[str] = []
    for directory in dirs:
        exact = Path(directory) / f"{stem}.yaml"
        if exact.is_file():
            return str(exact)
        for rel in find_yaml_files(directory):
            if Path(rel).stem == Path(stem).name:
                matches.append(str(Path(directory) / rel))
    if len(matches) > 1:
        raise ScenarioResolveError(f"Ambiguous scenario '{name}': {', '.join(matches)}")
    return matches[0] if matches else None


def resolve_scenario_files(args: Sequence[str], dirs: Sequence[str]) -> List[str]:
    """把命令行参数解析为场景文件列表；无参数时发现 dirs 中的全部场景。"""
    if not args:
        return discover_scenario_files(dirs)

    files: List[str] = []
    for arg in args:
        if os.path.isfile(arg):
            files.append(arg)
            continue
        if any(ch in arg for ch in "*?["):
            expanded = sorted(p for p in glob.glob(arg, recursive=True) if p.endswith(".yaml"))
            if not expanded:
                raise ScenarioResolveError(f"No scenarios match pattern: {arg}")
            files.extend(expanded)
            continue
        path = _resolve_name(arg, dirs)
        if path is None:
            raise ScenarioResolveError(f"Scenario not found: {arg}")
        files.append(path)
    return files
