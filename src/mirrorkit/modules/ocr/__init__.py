from .types import DescribeResult, DetectedElement
from .recognize import OcrScreenDescriber, decode_base64_png, load_image, ocr
from .engine import get_ocr_engine

__all__ = [
    "DescribeResult",
    "DetectedElement",
    "OcrScreenDescriber",
    "decode_base64_png",
    "load_image",
    "ocr",
    "get_ocr_engine",
]
