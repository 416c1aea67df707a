"""
命令编排：test / compile / record / instructions

- 单个场景内步骤严格按顺序执行，首个失败后剩余步骤记为 SKIP，不再尝试
- 解析失败只影响该文件，批次继续
- 编译产物过期时报告原因并回退到实时执行
- 返回值即进程退出码：没有任何失败步骤时为 0
"""
from __future__ import annotations

import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, TextIO

from ...core.config import Settings, settings as default_settings
from ...core.constants import CompiledAction, StepStatus, WindowState
from ...core.errors import ScenarioParseError, ScenarioResolveError, StaleCompiledArtifact
from ...core.logger import DEFAULT_LOG_CONTEXT, LogContext
from ..compiler import model as compiled_io
from ..compiler.compiler import RecordingDescriber, compile_scenario
from ..compiler.model import CompiledScenario, CompiledStep
from ..executor.compiled_executor import CompiledStepExecutor
from ..executor.step_executor import StepExecutor
from ..executor.types import StepExecutorConfig, StepResult
from ..recorder.classifier import ClassifierThresholds
from ..recorder.generator import generate_scenario_text
from ..recorder.recorder import EventRecorder
from ..scenario.dialect import parse_dialect, render_instructions
from ..scenario.loader import ScenarioLoader, resolve_scenario_files
from ..scenario.types import ScenarioDefinition, ScenarioStep
from ..targets.registry import TargetRegistry
from .junit import write_junit
from .reporter import ConsoleReporter, ScenarioResult

SKIPPED_AFTER_FAILURE = "Skipped due to previous failure"

StepRunner = Callable[[int, ScenarioStep], StepResult]


@dataclass
class RunOptions:
    scenario_args: List[str] = field(default_factory=list)
    junit_path: Optional[str] = None
    screenshot_dir: Optional[str] = None
    timeout_seconds: Optional[int] = None
    dry_run: bool = False
    use_compiled: bool = True
    stop_on_failure: bool = False


@dataclass
class RecordOptions:
    output: str = "recorded-scenario.yaml"
    name: str = "Recorded Scenario"
    description: str = ""
    app: Optional[str] = None
    use_ocr: bool = True


def _executor_config(cfg: Settings, timeout_seconds: Optional[int], screenshot_dir: Optional[str],
                     dry_run: bool) -> StepExecutorConfig:
    overrides = {"dry_run": dry_run}
    if timeout_seconds is not None:
        overrides["wait_for_timeout_seconds"] = timeout_seconds
    if screenshot_dir:
        overrides["screenshot_dir"] = screenshot_dir
    return StepExecutorConfig.from_settings(cfg, **overrides)


def _run_steps(
    definition: ScenarioDefinition,
    run_step: StepRunner,
    reporter: ConsoleReporter,
    clock: Callable[[], float],
    mode: str = "",
) -> ScenarioResult:
    total = len(definition.steps)
    reporter.scenario_start(definition.name, definition.file_path, total, mode)
    start = clock()
    results: List[StepResult] = []
    stopped = False

    for index, step in enumerate(definition.steps):
        if stopped:
            result = StepResult(step, StepStatus.SKIPPED, SKIPPED_AFTER_FAILURE, 0.0)
        else:
            result = run_step(index, step)
            stopped = result.failed
        results.append(result)
        reporter.step(index, total, result)

    scenario_result = ScenarioResult(
        name=definition.name,
        file_path=definition.file_path,
        step_results=results,
        duration_seconds=clock() - start,
        compiled=mode == "compiled",
    )
    reporter.scenario_end(scenario_result)
    return scenario_result


def execute_scenario(
    definition: ScenarioDefinition,
    executor: StepExecutor,
    reporter: ConsoleReporter,
) -> ScenarioResult:
    """实时模式执行一个场景。"""
    return _run_steps(
        definition,
        lambda index, step: executor.execute(step, index, definition.name),
        reporter,
        executor.clock,
    )


def execute_compiled_scenario(
    definition: ScenarioDefinition,
    compiled: CompiledScenario,
    executor: CompiledStepExecutor,
    reporter: ConsoleReporter,
) -> ScenarioResult:
    """回放模式执行；逐步按 hints 分派，无 hints 的步骤走实时执行。"""
    by_index = {s.index: s for s in compiled.steps}

    def run_step(index: int, step: ScenarioStep) -> StepResult:
        compiled_step: Optional[CompiledStep] = by_index.get(index)
        return executor.execute(step, compiled_step, index, definition.name)

    return _run_steps(definition, run_step, reporter, executor.live.clock, mode="compiled")


def _require_connected(registry: TargetRegistry, reporter: ConsoleReporter, action: str) -> bool:
    state = registry.active_target.bridge.get_state()
    if state != WindowState.CONNECTED:
        reporter.line(f"Error: device is not connected (state: {WindowState(state).value})")
        reporter.line(f"Connect the device before {action}.")
        return False
    return True


def run_tests(
    options: RunOptions,
    registry: TargetRegistry,
    *,
    cfg: Settings = default_settings,
    log_context: LogContext = DEFAULT_LOG_CONTEXT,
    reporter: Optional[ConsoleReporter] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> int:
    reporter = reporter or ConsoleReporter(verbose=log_context.verbose)
    log = log_context.bind("TestRunner")

    try:
        files = resolve_scenario_files(options.scenario_args, cfg.scenario_dirs)
    except ScenarioResolveError as e:
        reporter.line(f"Error: {e}")
        return 1
    if not files:
        reporter.line("No scenarios found.")
        reporter.line(f"Place .yaml files in {', '.join(cfg.scenario_dirs)} or specify paths.")
        return 1

    reporter.run_start(len(files))
    if not options.dry_run and not _require_connected(registry, reporter, "running tests"):
        return 1

    config = _executor_config(cfg, options.timeout_seconds, options.screenshot_dir, options.dry_run)
    loader = ScenarioLoader(cfg.default_scroll_max)
    home_target = registry.active_name
    results: List[ScenarioResult] = []

    for path in files:
        try:
            definition = loader.load(path)
        except ScenarioParseError as e:
            reporter.parse_error(path, e.reason)
            results.append(ScenarioResult(name=Path(path).stem, file_path=path, error=str(e)))
            if options.stop_on_failure:
                break
            continue

        # 每个场景都从默认目标开始
        ctx = registry.switch_active(home_target)
        executor = StepExecutor(ctx.bridge, ctx.input, ctx.describer, ctx.capture, config,
                                registry=registry, log_context=log_context, sleep=sleep, clock=clock)

        compiled = None
        if options.use_compiled and not options.dry_run:
            try:
                compiled = compiled_io.load_fresh(path, ctx.bridge.get_window_info(), definition.step_types)
            except StaleCompiledArtifact as e:
                reporter.stale_artifact(e.path, e.reason)
                log.warning("编译产物已过期，回退实时执行: {}", e)

        if compiled is not None:
            result = execute_compiled_scenario(definition, compiled, CompiledStepExecutor(executor), reporter)
        else:
            result = execute_scenario(definition, executor, reporter)
        results.append(result)
        if result.failed and options.stop_on_failure:
            break

    reporter.summary(results)

    if options.junit_path:
        try:
            written = write_junit(options.junit_path, results)
            reporter.line()
            reporter.line(f"JUnit XML written to: {written}")
        except OSError as e:
            reporter.line()
            reporter.line(f"Warning: Failed to write JUnit XML: {e}")

    return 1 if any(r.failed for r in results) else 0


def run_compile(
    scenario_args: Sequence[str],
    registry: TargetRegistry,
    *,
    timeout_seconds: Optional[int] = None,
    cfg: Settings = default_settings,
    log_context: LogContext = DEFAULT_LOG_CONTEXT,
    reporter: Optional[ConsoleReporter] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> int:
    reporter = reporter or ConsoleReporter(verbose=log_context.verbose)

    try:
        files = resolve_scenario_files(scenario_args, cfg.scenario_dirs)
    except ScenarioResolveError as e:
        reporter.line(f"Error: {e}")
        return 1
    if not files:
        reporter.line("No scenarios to compile.")
        return 1

    if not _require_connected(registry, reporter, "compiling"):
        return 1
    window = registry.active_target.bridge.get_window_info()
    if window is None:
        reporter.line("Error: cannot get device window info.")
        return 1

    reporter.run_start(len(files), "compile")
    config = _executor_config(cfg, timeout_seconds, None, False)
    loader = ScenarioLoader(cfg.default_scroll_max)
    home_target = registry.active_name
    any_failed = False

    for path in files:
        try:
            definition = loader.load(path)
        except ScenarioParseError as e:
            reporter.parse_error(path, e.reason)
            any_failed = True
            continue

        ctx = registry.switch_active(home_target)
        describer = RecordingDescriber(ctx.describer)
        executor = StepExecutor(ctx.bridge, ctx.input, describer, ctx.capture, config,
                                registry=registry, log_context=log_context, sleep=sleep, clock=clock)

        reporter.scenario_start(definition.name, path, len(definition.steps), "compile")
        compiled = compile_scenario(definition, executor, describer, window, on_step=reporter.step)
        if compiled is None:
            reporter.line("  FAIL: compilation aborted due to step failure")
            any_failed = True
            continue

        try:
            output = compiled_io.save(compiled, path)
        except OSError as e:
            reporter.line(f"  FAIL: {e}")
            any_failed = True
            continue

        with_hints = sum(1 for s in compiled.steps if s.hints is not None)
        passthrough = sum(1 for s in compiled.steps
                          if s.hints is not None and s.hints.compiled_action == CompiledAction.PASSTHROUGH)
        reporter.line(f"  OK: {with_hints} compiled, {passthrough} passthrough")
        reporter.line(f"  Output: {output}")

    return 1 if any_failed else 0


def wait_for_interrupt(recorder: EventRecorder, poll_seconds: float = 0.2) -> None:
    """阻塞直到 Ctrl+C。"""
    try:
        while recorder.running:
            time.sleep(poll_seconds)
    except KeyboardInterrupt:
        pass


def run_record(
    options: RecordOptions,
    registry: TargetRegistry,
    *,
    cfg: Settings = default_settings,
    log_context: LogContext = DEFAULT_LOG_CONTEXT,
    reporter: Optional[ConsoleReporter] = None,
    out: Optional[TextIO] = None,
    recorder: Optional[EventRecorder] = None,
    wait: Callable[[EventRecorder], None] = wait_for_interrupt,
) -> int:
    reporter = reporter or ConsoleReporter(verbose=log_context.verbose)
    ctx = registry.active_target

    if not _require_connected(registry, reporter, "recording"):
        return 1
    window = ctx.bridge.get_host_window()
    if window is None:
        reporter.line("Error: cannot find the device window.")
        return 1

    if recorder is None:
        recorder = EventRecorder(
            ctx.bridge,
            ctx.describer if options.use_ocr else None,
            ClassifierThresholds.from_settings(cfg),
            label_max_distance=cfg.event_label_max_distance,
            log_context=log_context,
        )

    reporter.line("mirrorkit record: recording interactions on the device window")
    reporter.line(f"  Window: {int(window.width)}x{int(window.height)} at ({int(window.x)}, {int(window.y)})")
    reporter.line(f"  Output: {options.output}")
    if not options.use_ocr:
        reporter.line("  OCR: disabled (taps will use coordinates only)")
    reporter.line("  Press Ctrl+C to stop recording and save.")
    reporter.line()

    if not recorder.start():
        reporter.line("Error: failed to start the input listener.")
        return 1

    try:
        wait(recorder)
    finally:
        events = recorder.stop()

    if not events:
        reporter.line("No interactions recorded.")
        return 0
    reporter.line(f"Recorded {len(events)} interaction(s).")

    text = generate_scenario_text(events, options.name, options.description, options.app)
    if options.output == "-":
        (out or sys.stdout).write(text)
        return 0
    try:
        Path(options.output).write_text(text, encoding="utf-8")
    except OSError as e:
        reporter.line(f"Error writing file: {e}")
        return 1
    reporter.line(f"Scenario written to: {options.output}")
    return 0


def run_instructions(path: str, *, out: Optional[TextIO] = None, reporter: Optional[ConsoleReporter] = None) -> int:
    """把场景渲染成给 AI / 人工操作员的编号指令。"""
    reporter = reporter or ConsoleReporter()
    try:
        content = Path(path).read_text(encoding="utf-8")
        nodes = parse_dialect(content, path)
    except OSError as e:
        reporter.line(f"Error: cannot read {path}: {e}")
        return 1
    except ScenarioParseError as e:
        reporter.parse_error(path, e.reason)
        return 1

    stream = out or sys.stdout
    for line in render_instructions(nodes):
        stream.write(line + "\n")
    return 0
