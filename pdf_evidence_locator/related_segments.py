"""Keyword-based search for passages related to a user selection.

Candidates found here are re-anchored onto the page geometry with the
cross-page matcher, the same way AI-cited evidence is.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from pdf_evidence_locator.cross_page_matcher import match_evidence
from pdf_evidence_locator.models import Evidence, PageIndex, RelatedSegment

MAX_RELATED_SEGMENTS = 6

# Line-length bounds (characters) for segment candidates.
_MIN_SEGMENT_LINE = 40
_MAX_SEGMENT_LINE = 360
_MIN_SENTENCE = 25

_SENTENCE_SPLIT_RE = re.compile(r"[。！？.!?]\s+")
_ENGLISH_TOKEN_RE = re.compile(r"[a-z]{4,}")
_CHINESE_TOKEN_RE = re.compile(r"[一-龥]{2,6}")

STOPWORDS = frozenset(
    {
        "the", "and", "with", "from", "that", "this", "into", "using", "used",
        "use", "paper", "study", "results", "method", "methods", "analysis",
        "model", "data", "based", "were", "their", "have", "has", "for", "are",
        "was", "not", "but", "can", "may", "also", "such", "these", "those",
        "between", "within",
    }
)

STOPWORDS_ZH = frozenset(
    {
        "我们", "本文", "研究", "结果", "方法", "通过", "进行", "提出", "分析",
        "数据", "模型", "可以", "因此", "其中", "一个", "以及", "同时", "对于",
        "相关", "不同", "重要", "主要", "进一步",
    }
)


def segment_pages(page_texts: Sequence[str]) -> list[RelatedSegment]:
    """Split page texts into candidate passages.

    Lines of 40 characters or fewer are ignored. Lines longer than 360
    characters are split into sentences, keeping those over 25 characters.
    """
    segments: list[RelatedSegment] = []
    for page_index, page_text in enumerate(page_texts):
        for raw_line in (page_text or "").splitlines():
            line = raw_line.strip()
            if len(line) <= _MIN_SEGMENT_LINE:
                continue
            if len(line) > _MAX_SEGMENT_LINE:
                for part in _SENTENCE_SPLIT_RE.split(line):
                    part = part.strip()
                    if len(part) > _MIN_SENTENCE:
                        segments.append(RelatedSegment(text=part, page_index=page_index))
            else:
                segments.append(RelatedSegment(text=line, page_index=page_index))
    return segments


def extract_keywords(text: str, limit: int = 3) -> list[str]:
    """Most frequent non-stopword English and Chinese tokens of *text*."""
    counts: dict[str, int] = {}
    for token in _ENGLISH_TOKEN_RE.findall(text.lower()):
        if token not in STOPWORDS:
            counts[token] = counts.get(token, 0) + 1
    for token in _CHINESE_TOKEN_RE.findall(text):
        if token not in STOPWORDS_ZH:
            counts[token] = counts.get(token, 0) + 1
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [token for token, _ in ranked[:limit]]


def score_segment(text: str, keywords: Sequence[str]) -> float:
    """Fraction of *keywords* that occur in *text*, case-insensitively."""
    if not keywords:
        return 0.0
    lower = text.lower()
    hits = sum(1 for keyword in keywords if keyword and keyword.lower() in lower)
    return hits / len(keywords)


def find_related_segments(
    selection: str,
    segments: Sequence[RelatedSegment],
    limit: int = MAX_RELATED_SEGMENTS,
) -> list[RelatedSegment]:
    """Rank *segments* by keyword overlap with *selection*.

    Returns the positive-score segments, best first; when none scores, the
    first *limit* segments are returned so callers always have candidates.
    """
    if not segments:
        return []
    keywords = extract_keywords(selection, 4) or [selection.strip()]
    scored = [
        RelatedSegment(
            text=segment.text,
            page_index=segment.page_index,
            score=score_segment(segment.text, keywords),
        )
        for segment in segments
    ]
    ranked = sorted(scored, key=lambda segment: segment.score, reverse=True)
    picked = [segment for segment in ranked if segment.score > 0][:limit]
    return picked or ranked[:limit]


def match_related_segments(
    segments: Sequence[RelatedSegment], indices: Sequence[PageIndex]
) -> list[Evidence]:
    """Re-anchor related segments onto the page geometry."""
    return match_evidence(
        (Evidence(text=segment.text, page_index=segment.page_index) for segment in segments),
        indices,
    )
