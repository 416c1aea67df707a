"""核心 OCR 识别函数与基于截图的 ScreenDescriber 实现。"""
from __future__ import annotations

import base64
import binascii
import os
from typing import List, Optional, Union

import cv2
import numpy as np

from ...core.config import settings
from ...core.logger import logger
from .engine import acquire_ocr
from .types import DescribeResult, DetectedElement

ImageLike = Union[str, bytes, np.ndarray]


def load_image(img: ImageLike) -> np.ndarray:
    """Load an image into a BGR numpy array.

    - str: treated as a file path and loaded via cv2.imread
    - bytes: decoded via cv2.imdecode
    - np.ndarray: returned as-is
    """
    if isinstance(img, np.ndarray):
        return img
    if isinstance(img, (bytes, bytearray)):
        arr = np.frombuffer(img, dtype=np.uint8)
        mat = cv2.imdecode(arr, cv2.IMREAD_COLOR)
        if mat is None:
            raise ValueError("Failed to decode image bytes")
        return mat
    if isinstance(img, str):
        if not os.path.isfile(img):
            raise FileNotFoundError(f"Image file not found: {img}")
        mat = cv2.imread(img, cv2.IMREAD_COLOR)
        if mat is None:
            raise ValueError(f"Failed to load image from path: {img}")
        return mat
    raise TypeError(f"Unsupported image type: {type(img)}")


def decode_base64_png(data: str) -> Optional[bytes]:
    """解码 base64 截图，失败返回 None。"""
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        return None


def ocr(
    image: ImageLike,
    *,
    min_confidence: float = 0.5,
    scale: float = 1.0,
) -> List[DetectedElement]:
    """对图像执行 OCR 识别。

    Args:
        image: 图像来源（路径 / bytes / np.ndarray）
        min_confidence: 最低置信度阈值，低于此值的结果将被过滤
        scale: 像素 / 窗口点 比例，坐标除以该值得到窗口相对坐标

    Returns:
        按识别顺序排列的 DetectedElement 列表
    """
    engine, lock = acquire_ocr()
    img = load_image(image)

    # PaddleOCR 3.x: predict() 接受 BGR ndarray，返回 OCRResult 列表
    with lock:
        results = engine.predict(img)

    elements: List[DetectedElement] = []
    if results:
        result = results[0]
        for text, confidence, poly in zip(result["rec_texts"], result["rec_scores"], result["rec_polys"]):
            if confidence < min_confidence or not str(text).strip():
                continue
            box = [(float(p[0]) / scale, float(p[1]) / scale) for p in poly]
            elements.append(DetectedElement.from_box(str(text), float(confidence), box))
    return elements


class OcrScreenDescriber:
    """截图 + OCR。每次 describe() 都重新截图识别。"""

    def __init__(self, capturer, *, min_confidence: Optional[float] = None, scale: float = 1.0) -> None:
        self.capturer = capturer
        self.min_confidence = settings.ocr_min_confidence if min_confidence is None else min_confidence
        self.scale = scale
        self._log = logger.bind(module="OcrScreenDescriber")

    def describe(self) -> Optional[DescribeResult]:
        data = self.capturer.capture_base64()
        if not data:
            self._log.warning("截图失败，无法执行 OCR")
            return None
        raw = decode_base64_png(data)
        if raw is None:
            self._log.warning("截图数据不是合法的 base64")
            return None
        try:
            elements = ocr(raw, min_confidence=self.min_confidence, scale=self.scale)
        except ValueError as e:
            self._log.error(f"OCR 识别失败: {e}")
            return None
        except Exception as e:
            # 引擎缺失或推理异常，按截图失败处理
            self._log.error(f"OCR 引擎异常: {type(e).__name__}: {e}")
            return None
        self._log.debug("OCR 完成: {} 个元素", len(elements))
        return DescribeResult(elements=elements, screenshot=data)
