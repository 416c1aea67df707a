"""
OCR 元素文本匹配

优先级（命中即停）：
1. 文本完全相等                      → exact
2. 忽略大小写相等                    → case-insensitive
3. label 是元素文本的子串（忽略大小写） → substring
4. 非空元素文本是 label 的子串        → substring

同一优先级内按元素顺序取第一个，因此对稳定的输入顺序结果确定。
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from ...core.constants import MatchStrategy
from ..ocr.types import DetectedElement


@dataclass(frozen=True)
class MatchResult:
    element: DetectedElement
    strategy: MatchStrategy


def find_match(label: str, elements: Sequence[DetectedElement]) -> Optional[MatchResult]:
    if not label or not elements:
        return None

    for e in elements:
        if e.text == label:
            return MatchResult(e, MatchStrategy.EXACT)

    lowered = label.lower()
    for e in elements:
        if e.text.lower() == lowered:
            return MatchResult(e, MatchStrategy.CASE_INSENSITIVE)

    for e in elements:
        if lowered in e.text.lower():
            return MatchResult(e, MatchStrategy.SUBSTRING)

    for e in elements:
        text = e.text.lower()
        if text and text in lowered:
            return MatchResult(e, MatchStrategy.SUBSTRING)

    return None


def is_visible(label: str, elements: Sequence[DetectedElement]) -> bool:
    return find_match(label, elements) is not None


def format_visible(elements: Sequence[DetectedElement]) -> str:
    """未命中时的诊断信息：列出全部可见文本。"""
    return "[" + ", ".join(e.text for e in elements) + "]"
