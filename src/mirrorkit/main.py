"""
命令行入口

    mirrorkit test [scenario...]      执行场景并报告
    mirrorkit compile scenario...     编译场景，生成 .compiled.json
    mirrorkit record [-o OUT]         录制交互，生成场景文本
    mirrorkit instructions FILE       输出给 AI / 操作员的编号指令
"""
from __future__ import annotations

import argparse
import sys
from typing import List, Optional, Tuple

from .core.config import settings
from .core.logger import LogContext, setup_logger
from .core.thread_pool import shutdown_pools
from .modules.device.adapter import AdapterConfig, DeviceAdapter
from .modules.ocr.recognize import OcrScreenDescriber
from .modules.runner.runner import (
    RecordOptions,
    RunOptions,
    run_compile,
    run_instructions,
    run_record,
    run_tests,
)
from .modules.targets.registry import TargetContext, TargetRegistry


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mirrorkit", description="Scenario runner for mirrored touchscreen devices")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show step messages and info logs")
    parser.add_argument("--debug", action="store_true", help="Show per-step diagnostic logs")

    subparsers = parser.add_subparsers(dest="command", required=True)

    test = subparsers.add_parser("test", help="Run scenarios and report results")
    test.add_argument("scenarios", nargs="*", help="Scenario names, .yaml paths or globs (default: discover all)")
    test.add_argument("--junit", dest="junit_path", default=None, help="Write JUnit XML report to PATH")
    test.add_argument("--screenshot-dir", default=None, help="Failure screenshot directory")
    test.add_argument("--timeout", type=int, default=None, help="wait_for timeout in seconds")
    test.add_argument("--dry-run", action="store_true", help="Parse and validate without touching the device")
    test.add_argument("--no-compiled", action="store_true", help="Ignore .compiled.json artifacts")
    test.add_argument("--stop-on-failure", action="store_true", help="Stop the batch after the first failed scenario")

    compile_ = subparsers.add_parser("compile", help="Compile scenarios into .compiled.json artifacts")
    compile_.add_argument("scenarios", nargs="+", help="Scenario names or .yaml paths")
    compile_.add_argument("--timeout", type=int, default=None, help="wait_for timeout in seconds")

    record = subparsers.add_parser("record", help="Record interactions into a scenario")
    record.add_argument("-o", "--output", default="recorded-scenario.yaml", help="Output path, '-' for stdout")
    record.add_argument("-n", "--name", default="Recorded Scenario", help="Scenario name")
    record.add_argument("--description", default="", help="Scenario description")
    record.add_argument("--app", default=None, help="App name written to the header")
    record.add_argument("--no-ocr", action="store_true", help="Record coordinates only")

    instructions = subparsers.add_parser("instructions", help="Render a scenario as numbered instructions")
    instructions.add_argument("file", help="Scenario .yaml file")

    return parser


def mirror_window(cfg) -> Optional[Tuple[float, float, float, float]]:
    if cfg.mirror_window_width <= 0 or cfg.mirror_window_height <= 0:
        return None
    return (cfg.mirror_window_x, cfg.mirror_window_y, cfg.mirror_window_width, cfg.mirror_window_height)


def build_registry() -> TargetRegistry:
    """按配置为每个 ADB 设备构造一组能力接口。"""
    targets = dict(settings.adb_targets) or {"default": settings.adb_serial}
    contexts = {}
    for name, serial in targets.items():
        adapter = DeviceAdapter(AdapterConfig(
            adb_path=settings.adb_path,
            adb_serial=serial,
            timeout=settings.process_timeout_seconds,
            screencap_timeout=settings.screencap_timeout_seconds,
            app_packages=dict(settings.app_packages),
            mirror_window=mirror_window(settings),
        ))
        describer = OcrScreenDescriber(adapter, min_confidence=settings.ocr_min_confidence)
        contexts[name] = TargetContext(name=name, bridge=adapter, input=adapter, describer=describer, capture=adapter)
    return TargetRegistry(contexts)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # 日志上下文只在这里构造一次，之后只读传递
    log_context = LogContext(verbose=args.verbose, debug=args.debug)
    setup_logger(force=True, level=log_context.level)

    if args.command == "instructions":
        return run_instructions(args.file)

    registry = build_registry()
    try:
        if args.command == "test":
            options = RunOptions(
                scenario_args=list(args.scenarios),
                junit_path=args.junit_path,
                screenshot_dir=args.screenshot_dir,
                timeout_seconds=args.timeout,
                dry_run=args.dry_run,
                use_compiled=not args.no_compiled,
                stop_on_failure=args.stop_on_failure,
            )
            return run_tests(options, registry, log_context=log_context)
        if args.command == "compile":
            return run_compile(args.scenarios, registry, timeout_seconds=args.timeout, log_context=log_context)
        if args.command == "record":
            options = RecordOptions(
                output=args.output,
                name=args.name,
                description=args.description,
                app=args.app,
                use_ocr=not args.no_ocr,
            )
            return run_record(options, registry, log_context=log_context)
    finally:
        shutdown_pools()
    return 2


if __name__ == "__main__":
    sys.exit(main())
