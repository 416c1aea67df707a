from .model import (
    CompiledScenario,
    CompiledStep,
    DeviceInfo,
    SourceInfo,
    StepHints,
    check_staleness,
    compiled_path,
    load,
    load_fresh,
    save,
)

__all__ = [
    "CompiledScenario",
    "CompiledStep",
    "DeviceInfo",
    "SourceInfo",
    "StepHints",
    "check_staleness",
    "compiled_path",
    "load",
    "load_fresh",
    "save",
]
