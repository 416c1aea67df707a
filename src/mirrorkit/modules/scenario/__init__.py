from .types import ScenarioDefinition, ScenarioStep
from .parser import parse_content, parse_file, parse_step, substitute_env_vars
from .loader import ScenarioLoader, resolve_scenario_files

__all__ = [
    "ScenarioDefinition",
    "ScenarioStep",
    "parse_content",
    "parse_file",
    "parse_step",
    "substitute_env_vars",
    "ScenarioLoader",
    "resolve_scenario_files",
]
