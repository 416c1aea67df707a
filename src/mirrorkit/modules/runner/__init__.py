from .reporter import ConsoleReporter, ScenarioResult
from .junit import build_junit, write_junit
from .runner import (
    SKIPPED_AFTER_FAILURE,
    RecordOptions,
    RunOptions,
    execute_compiled_scenario,
    execute_scenario,
    run_compile,
    run_instructions,
    run_record,
    run_tests,
)

__all__ = [
    "SKIPPED_AFTER_FAILURE",
    "ConsoleReporter",
    "ScenarioResult",
    "build_junit",
    "write_junit",
    "RecordOptions",
    "RunOptions",
    "execute_compiled_scenario",
    "execute_scenario",
    "run_compile",
    "run_instructions",
    "run_record",
    "run_tests",
]
