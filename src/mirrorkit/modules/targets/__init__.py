from .registry import TargetContext, TargetRegistry

__all__ = ["TargetContext", "TargetRegistry"]
