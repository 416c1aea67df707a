from .types import StepExecutorConfig, StepResult
from .matcher import MatchResult, find_match, is_visible
from .step_executor import StepExecutor, swipe_endpoints
from .compiled_executor import CompiledStepExecutor

__all__ = [
    "StepExecutorConfig",
    "StepResult",
    "MatchResult",
    "find_match",
    "is_visible",
    "StepExecutor",
    "swipe_endpoints",
    "CompiledStepExecutor",
]
