"""PaddleOCR 引擎管理（懒加载 + 线程安全）。"""
from __future__ import annotations

import os
import threading
from typing import Tuple

from ...core.config import settings
from ...core.logger import logger

# ── 在导入 PaddleOCR 之前设置环境变量，关闭模型源连通性检查 ──
os.environ.setdefault("PADDLE_PDX_DISABLE_MODEL_SOURCE_CHECK", "True")

_ocr_instance = None
_ocr_lock = threading.Lock()
# 推理锁：PaddleOCR predict() 非线程安全
_ocr_infer_lock = threading.Lock()


def get_ocr_engine():
    """获取 PaddleOCR 单例。

    首次调用时初始化引擎（数秒），后续调用直接返回缓存实例。
    线程安全（双检锁）。
    """
    global _ocr_instance
    if _ocr_instance is not None:
        return _ocr_instance

    with _ocr_lock:
        if _ocr_instance is not None:
            return _ocr_instance

        logger.info("正在初始化 PaddleOCR (lang={})...", settings.ocr_lang)
        try:
            from paddleocr import PaddleOCR  # noqa: delay import
        except ImportError as e:
            logger.error(f"PaddleOCR 导入失败，请安装 ocr 扩展依赖 (pip install mirrorkit[ocr]): {e}")
            raise

        try:
            _ocr_instance = PaddleOCR(
                use_textline_orientation=False,
                use_doc_orientation_classify=False,
                use_doc_unwarping=False,
                lang=settings.ocr_lang,
                device="cpu",
            )
        except Exception as e:
            logger.error(f"PaddleOCR 初始化失败: {e}")
            raise
        logger.info("PaddleOCR 初始化完成")
        return _ocr_instance


def acquire_ocr() -> Tuple[object, threading.Lock]:
    """返回 (engine, 推理锁)。"""
    return get_ocr_engine(), _ocr_infer_lock
