"""
全局线程池管理

外部进程（adb 截图 / 注入）的等待放到后台线程，调用方按截止时间 join，
避免挂起的外部进程无限期阻塞执行引擎。
"""
from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Optional

from .logger import logger

_io_pool: Optional[ThreadPoolExecutor] = None
_io_lock = threading.Lock()

_IO_POOL_SIZE = 4


def get_io_pool() -> ThreadPoolExecutor:
    """获取 I/O 线程池（外部进程等待等）。"""
    global _io_pool
    if _io_pool is not None:
        return _io_pool
    with _io_lock:
        if _io_pool is None:
            _io_pool = ThreadPoolExecutor(
                max_workers=_IO_POOL_SIZE,
                thread_name_prefix="process-wait",
            )
            logger.debug("I/O 线程池已创建: max_workers={}", _IO_POOL_SIZE)
        return _io_pool


def run_with_deadline(func, *args, timeout: float):
    """在 I/O 池中执行阻塞函数，超过 timeout 秒抛出 TimeoutError。

    超时后后台任务不会被强制终止，调用方负责清理其持有的资源（如 kill 进程）。
    """
    future = get_io_pool().submit(func, *args)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout as e:
        raise TimeoutError(f"操作超时 ({timeout:.1f}s)") from e


def shutdown_pools() -> None:
    """关闭线程池（进程退出时调用）。"""
    global _io_pool
    with _io_lock:
        if _io_pool:
            _io_pool.shutdown(wait=False)
            _io_pool = None
    logger.debug("线程池已关闭")
