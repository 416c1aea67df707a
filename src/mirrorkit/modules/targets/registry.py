"""
目标设备注册表

目标集合在构造后不可变；只有"当前活动目标"可变，由锁保护，
因为并发的工具调用可能与 target 切换竞争。
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from ...core.errors import UnknownTargetError
from ...core.logger import logger


@dataclass(frozen=True)
class TargetContext:
    """一个目标设备的完整能力集合。"""

    name: str
    bridge: object
    input: object
    describer: object
    capture: object


class TargetRegistry:
    def __init__(self, targets: Dict[str, TargetContext], active: Optional[str] = None) -> None:
        if not targets:
            raise ValueError("TargetRegistry 至少需要一个目标")
        self._targets = dict(targets)
        self._lock = threading.Lock()
        first = next(iter(self._targets))
        if active is not None and active not in self._targets:
            raise UnknownTargetError(active)
        self._active = active or first
        self._log = logger.bind(module="TargetRegistry")

    @property
    def active_name(self) -> str:
        with self._lock:
            return self._active

    @property
    def active_target(self) -> TargetContext:
        with self._lock:
            return self._targets[self._active]

    @property
    def all_targets(self) -> List[TargetContext]:
        return list(self._targets.values())

    def resolve(self, name: Optional[str] = None) -> Optional[TargetContext]:
        """按名称查找；name 为空时返回当前活动目标。"""
        if name is None:
            return self.active_target
        return self._targets.get(name)

    def switch_active(self, name: str) -> TargetContext:
        with self._lock:
            ctx = self._targets.get(name)
            if ctx is None:
                raise UnknownTargetError(name)
            if self._active != name:
                self._log.info("切换活动目标: {} -> {}", self._active, name)
            self._active = name
            return ctx
