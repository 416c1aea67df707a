"""
日志配置模块

调试 / 详细输出开关不做全局变量：main() 启动时构造一次 LogContext，
之后以只读方式逐层传入各组件。
"""
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from loguru import logger

from .config import settings

_configured = False


def setup_logger(force: bool = False, level: Optional[str] = None):
    """配置日志系统（幂等，force=True 时按当前 settings 重建；level 覆盖 settings.log_level）"""
    global _configured
    if _configured and not force:
        return logger
    level = level or settings.log_level

    # 移除默认处理器
    logger.remove()

    # 控制台输出（stderr，避免污染 record 写到 stdout 的场景文本）
    if settings.log_console_enabled:
        logger.add(
            sys.stderr,
            level=level,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{extra[module]}</cyan> - <level>{message}</level>",
        )

    if settings.log_file_enabled:
        log_dir = Path(settings.log_path)
        log_dir.mkdir(parents=True, exist_ok=True)

        # 文件输出 - 全局日志
        logger.add(
            log_dir / "mirrorkit_{time:YYYY-MM-DD}.log",
            level=level,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            rotation=settings.log_rotation,
            retention=f"{settings.log_retention_days} days",
            encoding="utf-8",
            serialize=True,  # JSON格式
        )

        # 错误日志单独记录
        logger.add(
            log_dir / "error_{time:YYYY-MM-DD}.log",
            level="ERROR",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            rotation=settings.log_rotation,
            retention=f"{settings.log_retention_days * 2} days",
            encoding="utf-8",
        )

    logger.configure(extra={"module": "-"})
    _configured = True
    return logger


@dataclass(frozen=True)
class LogContext:
    """进程级日志上下文，创建后只读。"""

    verbose: bool = False
    debug: bool = False

    @property
    def level(self) -> str:
        if self.debug:
            return "DEBUG"
        return "INFO" if self.verbose else settings.log_level

    def bind(self, module: str):
        """返回绑定模块名的子 logger。"""
        return logger.bind(module=module, verbose=self.verbose, debug=self.debug)

    def trace(self, log, message: str, *args) -> None:
        """仅在 debug 模式下输出的诊断日志。"""
        if self.debug:
            log.debug(message, *args)


DEFAULT_LOG_CONTEXT = LogContext()
