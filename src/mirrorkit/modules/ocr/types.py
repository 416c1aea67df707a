"""OCR 识别结果数据结构。"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple


@dataclass(frozen=True)
class DetectedElement:
    """单个识别到的屏幕文本，(x, y) 为窗口相对点击点。每次 OCR 重新生成。"""

    text: str
    x: float
    y: float
    confidence: float = 1.0

    @classmethod
    def from_box(cls, text: str, confidence: float, box: Sequence[Tuple[float, float]]) -> "DetectedElement":
        """由四点边界框构造，点击点取中心。"""
        xs = [p[0] for p in box]
        ys = [p[1] for p in box]
        return cls(
            text=text,
            x=sum(xs) / len(xs),
            y=sum(ys) / len(ys),
            confidence=max(0.0, min(1.0, float(confidence))),
        )


@dataclass
class DescribeResult:
    """一次 OCR 的结果集合。"""

    elements: List[DetectedElement] = field(default_factory=list)
    # 截图 base64（PNG），可能为空
    screenshot: str = ""

    @property
    def texts(self) -> List[str]:
        return [e.text for e in self.elements]
