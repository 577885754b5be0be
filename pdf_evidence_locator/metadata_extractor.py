"""First-page bibliographic metadata from assembled text lines.

Heuristics only: the title is the largest-font text near the top, authors
sit between the title and the abstract, and dates and venues are picked by
keyword scoring.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from pdf_evidence_locator.line_assembler import assemble_lines
from pdf_evidence_locator.models import DocumentMetadata, TextRun

_MAX_TITLE_LENGTH = 280
_MAX_AUTHOR_LENGTH = 200
_MAX_SUMMARY_LENGTH = 2400
_ABSTRACT_COLLECT_LIMIT = 1400
_MAX_KEYWORDS = 12
_TITLE_SIZE_SLACK = 0.3

NO_ABSTRACT = "No abstract extracted."
UNKNOWN_AUTHOR = "Unknown"

_ABSTRACT_RE = re.compile(r"^(abstract|摘要)\b[:：]?\s*", re.IGNORECASE)
_KEYWORDS_RE = re.compile(r"^(keywords?|关键[词字])\b[:：]?\s*", re.IGNORECASE)
_SECTION_LABEL_RE = re.compile(r"^(abstract|摘要|keywords?|关键[词字])\b[:：]?", re.IGNORECASE)
_INTRODUCTION_RE = re.compile(r"^(introduction|引言|1[\s.、]|i\.)", re.IGNORECASE)
_SPACE_BEFORE_PUNCT_RE = re.compile(r"\s+([,.;:!?])")
_KEYWORD_SPLIT_RE = re.compile(r"[;,，；、]")
_TOKEN_STRIP_RE = re.compile(r"[^\w\s]|_")

_AFFILIATION_RE = re.compile(
    r"\b(university|institute|department|school|laboratory|lab|college|faculty|"
    r"research|hospital|academy|center|centre|email|corresponding|address)\b",
    re.IGNORECASE,
)
_AFFILIATION_ZH_RE = re.compile(r"大学|学院|研究所|实验室|中心|医院|通讯作者|地址")

_MONTHS = {
    "jan": 1, "january": 1, "feb": 2, "february": 2, "mar": 3, "march": 3,
    "apr": 4, "april": 4, "may": 5, "jun": 6, "june": 6, "jul": 7, "july": 7,
    "aug": 8, "august": 8, "sep": 9, "sept": 9, "september": 9, "oct": 10,
    "october": 10, "nov": 11, "november": 11, "dec": 12, "december": 12,
}
_MONTH_PATTERN = (
    r"(Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|Jun(?:e)?|Jul(?:y)?|"
    r"Aug(?:ust)?|Sep(?:t|tember)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)"
)
_ISO_DATE_RE = re.compile(r"\b((?:19|20)\d{2})[./-](0?[1-9]|1[0-2])[./-](0?[1-9]|[12]\d|3[01])\b")
_MONTH_DAY_YEAR_RE = re.compile(
    rf"\b{_MONTH_PATTERN}\s+(\d{{1,2}}),?\s+((?:19|20)\d{{2}})\b", re.IGNORECASE
)
_DAY_MONTH_YEAR_RE = re.compile(
    rf"\b(\d{{1,2}})\s+{_MONTH_PATTERN}\s+((?:19|20)\d{{2}})\b", re.IGNORECASE
)
_YEAR_RE = re.compile(r"\b((?:19|20)\d{2})\b")

_DATE_BONUSES = (
    (re.compile(r"(published|publication date|published online|online published|first published)", re.IGNORECASE), 50),
    (re.compile(r"(accepted|acceptance)", re.IGNORECASE), 40),
    (re.compile(r"(received|submitted)", re.IGNORECASE), 30),
    (re.compile(r"(copyright|©)", re.IGNORECASE), 20),
)
_PUBLISHER_BONUSES = (
    (re.compile(r"(journal|transactions|proceedings|conference|symposium|workshop|arxiv|preprint)", re.IGNORECASE), 40),
    (re.compile(r"(ieee|acm|springer|elsevier|wiley|nature|science|neurips|icml|iclr|cvpr|aaai)", re.IGNORECASE), 35),
    (re.compile(r"(出版社|期刊|学报|会议|杂志|论文集|大会|研究会)"), 30),
)


@dataclass
class _MetaLine:
    text: str
    size: float


def extract_metadata(runs: Sequence[TextRun], fallback_title: str) -> DocumentMetadata:
    """Extract metadata from the text runs of a document's first page."""
    lines = [
        _MetaLine(text=_clean_line(line.text), size=line.font_size or line.height or 1.0)
        for line in assemble_lines(runs)
    ]
    return extract_metadata_from_lines([line for line in lines if line.text], fallback_title)


def first_page_text(runs: Sequence[TextRun]) -> str:
    return "\n".join(_clean_line(line.text) for line in assemble_lines(runs)).strip()


def extract_metadata_from_lines(
    lines: Sequence[_MetaLine], fallback_title: str
) -> DocumentMetadata:
    abstract_index = _find_index(lines, _ABSTRACT_RE)
    keyword_index = _find_index(lines, _KEYWORDS_RE)

    heading_limit = abstract_index if abstract_index > 0 else min(len(lines), 12)
    title_candidates = [
        line
        for line in lines[:heading_limit]
        if 8 <= len(line.text) <= 220 and not _SECTION_LABEL_RE.match(line.text)
    ]
    max_size = max((line.size for line in title_candidates), default=0.0)
    title_lines = [
        line for line in title_candidates if line.size >= max_size - _TITLE_SIZE_SLACK
    ][:2]
    title = (" ".join(line.text for line in title_lines).strip() or fallback_title)[
        :_MAX_TITLE_LENGTH
    ]

    title_texts = {line.text for line in title_lines}
    title_positions = [i for i, line in enumerate(lines) if line.text in title_texts]
    author_start = max(title_positions) + 1 if title_positions else 1
    author_end = (
        abstract_index
        if abstract_index > author_start
        else min(author_start + 6, len(lines))
    )
    author = _extract_author(lines[author_start:author_end], title)

    summary = _extract_abstract(lines, abstract_index)
    if not summary:
        tail = lines[max(0, author_end) : min(len(lines), max(author_end + 3, 6))]
        summary = " ".join(line.text for line in tail).strip()
    summary = summary[:_MAX_SUMMARY_LENGTH] or NO_ABSTRACT

    keywords: list[str] = []
    if keyword_index >= 0:
        keywords = _split_keywords(_KEYWORDS_RE.sub("", lines[keyword_index].text, count=1))
        if not keywords and keyword_index + 1 < len(lines):
            keywords = _split_keywords(lines[keyword_index + 1].text)

    return DocumentMetadata(
        title=title or fallback_title,
        author=author or UNKNOWN_AUTHOR,
        summary=summary,
        keywords=keywords,
        published_date=extract_published_date([line.text for line in lines]) or None,
        publisher=extract_publisher([line.text for line in lines], title) or None,
    )


def _clean_line(text: str) -> str:
    value = re.sub(r"\s+", " ", text)
    return _SPACE_BEFORE_PUNCT_RE.sub(r"\1", value).strip()


def _find_index(lines: Sequence[_MetaLine], pattern: re.Pattern[str]) -> int:
    for position, line in enumerate(lines):
        if pattern.match(line.text):
            return position
    return -1


def tokenize(text: str) -> list[str]:
    """Lower-cased word tokens longer than one character."""
    cleaned = _TOKEN_STRIP_RE.sub(" ", (text or "").lower())
    return [token for token in cleaned.split() if len(token) > 1]


def jaccard_similarity(a: set[str], b: set[str]) -> float:
    if not a or not b:
        return 0.0
    intersection = len(a & b)
    union = len(a) + len(b) - intersection
    return intersection / union if union else 0.0


def is_affiliation_line(line: str) -> bool:
    value = line.strip()
    if not value:
        return False
    if _AFFILIATION_RE.search(value) or _AFFILIATION_ZH_RE.search(value):
        return True
    return sum(char.isdigit() for char in value) >= 6


def _clean_author_line(line: str) -> str:
    value = re.sub(r"^by\s+", "", line, flags=re.IGNORECASE)
    value = re.sub(r"[*†‡§]+", "", value)
    return re.sub(r"\s+", " ", value).strip()


def _extract_author(lines: Sequence[_MetaLine], title: str) -> str:
    title_tokens = set(tokenize(title))
    authors: list[str] = []
    for line in lines:
        if not line.text or "@" in line.text or _SECTION_LABEL_RE.match(line.text):
            continue
        cleaned = _clean_author_line(line.text)
        if len(cleaned) <= 1 or is_affiliation_line(cleaned):
            continue
        tokens = set(tokenize(cleaned))
        if not tokens:
            continue
        overlap = len(tokens & title_tokens) / len(tokens)
        if overlap >= 0.6 or jaccard_similarity(tokens, title_tokens) >= 0.45:
            continue
        authors.append(cleaned)
    return ", ".join(authors)[:_MAX_AUTHOR_LENGTH]


def _extract_abstract(lines: Sequence[_MetaLine], abstract_index: int) -> str:
    if abstract_index < 0:
        return ""
    collected: list[str] = []
    first = _ABSTRACT_RE.sub("", lines[abstract_index].text, count=1).strip()
    if first:
        collected.append(first)
    for line in lines[abstract_index + 1 :]:
        value = line.text.strip()
        if not value:
            continue
        if _SECTION_LABEL_RE.match(value) and _KEYWORDS_RE.match(value):
            break
        if _INTRODUCTION_RE.match(value):
            break
        collected.append(value)
        if len(" ".join(collected)) > _ABSTRACT_COLLECT_LIMIT:
            break
    return " ".join(collected).strip()


def _split_keywords(text: str) -> list[str]:
    parts = (part.strip() for part in _KEYWORD_SPLIT_RE.split(text))
    return [part for part in parts if part][:_MAX_KEYWORDS]


def format_date(year: int, month: int | None = None, day: int | None = None) -> str:
    """``YYYY``, ``YYYY-MM`` or ``YYYY-MM-DD``; empty for implausible years."""
    if year < 1900 or year > 2100:
        return ""
    if not month or not 1 <= month <= 12:
        return f"{year:04d}"
    if not day or not 1 <= day <= 31:
        return f"{year:04d}-{month:02d}"
    return f"{year:04d}-{month:02d}-{day:02d}"


def parse_date(text: str) -> str:
    """The first recognisable date in *text*, formatted, or ``""``."""
    value = re.sub(r"\s+", " ", text or "").strip()
    if not value:
        return ""
    iso = _ISO_DATE_RE.search(value)
    if iso:
        return format_date(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))
    month_first = _MONTH_DAY_YEAR_RE.search(value)
    if month_first:
        return format_date(
            int(month_first.group(3)),
            _MONTHS[month_first.group(1).lower()],
            int(month_first.group(2)),
        )
    day_first = _DAY_MONTH_YEAR_RE.search(value)
    if day_first:
        return format_date(
            int(day_first.group(3)),
            _MONTHS[day_first.group(2).lower()],
            int(day_first.group(1)),
        )
    year = _YEAR_RE.search(value)
    if year:
        return format_date(int(year.group(1)))
    return ""


def extract_published_date(lines: Sequence[str]) -> str:
    """Best-scoring date among the lines, favouring publication wording."""
    best = ""
    best_score = -1
    for position, line in enumerate(lines):
        date = parse_date(line)
        if not date:
            continue
        score = 10 + sum(bonus for pattern, bonus in _DATE_BONUSES if pattern.search(line))
        if position < 20:
            score += 5
        if score > best_score:
            best, best_score = date, score
    return best


def extract_publisher(lines: Sequence[str], title: str) -> str:
    """Most venue-like line among the first 40, or ``""``."""
    title_tokens = set(tokenize(title))
    best = ""
    best_score = -1
    for position, raw in enumerate(lines[:40]):
        value = raw.strip()
        if len(value) < 4 or len(value) > 160 or "@" in value:
            continue
        if _SECTION_LABEL_RE.match(value):
            continue
        score = 5 + sum(
            bonus for pattern, bonus in _PUBLISHER_BONUSES if pattern.search(value)
        )
        if position < 10:
            score += 5
        if title_tokens and jaccard_similarity(set(tokenize(value)), title_tokens) >= 0.45:
            score -= 20
        if score >= 20 and score > best_score:
            best, best_score = value, score
    return best
