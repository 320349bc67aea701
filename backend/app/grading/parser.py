"""Free-text AI grading response parsing.

Each report section is pulled out of the response by an ordered chain of
extractor strategies. The first strategy that returns a value wins, so a
strict labeled match is always preferred over the looser fallbacks.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)


class ResponseField(str, Enum):
    GRADE = "grade"
    DEFECTS = "defects"
    PAGE_QUALITY = "page_quality"
    RESTORATION = "restoration"
    REPAIR = "repair"
    PREVENTION = "prevention"


FIELD_LABELS: dict[ResponseField, str] = {
    ResponseField.GRADE: r"grade",
    ResponseField.DEFECTS: r"defects?",
    ResponseField.PAGE_QUALITY: r"page[ \t]+quality",
    ResponseField.RESTORATION: r"restoration",
    ResponseField.REPAIR: r"repair(?:[ \t]*/[ \t]*improvements?)?",
    ResponseField.PREVENTION: r"prevention",
}

# Section order used to bound the loose span fallback.
SECTION_ORDER = (
    ResponseField.DEFECTS,
    ResponseField.PAGE_QUALITY,
    ResponseField.RESTORATION,
    ResponseField.REPAIR,
    ResponseField.PREVENTION,
)

_MARKUP = r"(?:\*\*|__)?"
_LEAD = r"[ \t>#*_-]*"
_ALL_LABELS = "|".join(FIELD_LABELS.values())

_FIELD_START_RE = re.compile(rf"^{_LEAD}{_MARKUP}(?:{_ALL_LABELS}){_MARKUP}[ \t]*:", re.IGNORECASE)
_HEADING_RE = re.compile(r"^[ \t]*(?:#{1,6}[ \t]|\*\*[^*\n]+\*\*[ \t]*:?[ \t]*$|\*\*[^*\n]+:\*\*[ \t]*$)")
# "**Brittle**" -> "Brittle"; "**Spine:** stress\n**Corners:** wear" is left alone.
_WRAPPED_RE = re.compile(r"^(\*\*|__)(?P<inner>(?:(?!\1).)+)\1$", re.DOTALL)
_NUMBER_RE = re.compile(r"(?<![\w.])-?\d+(?:\.\d+)?")
_NUMERIC_GRADE_LINE_RE = re.compile(
    r"^[ \t>*_-]*(?P<number>\d+(?:\.\d+)?)[ \t]+(?P<label>[A-Za-z(][^\n]*)$",
    re.MULTILINE,
)

_labeled_cache: dict[ResponseField, re.Pattern[str]] = {}
_span_cache: dict[ResponseField, re.Pattern[str]] = {}


def _labeled_pattern(field: ResponseField) -> re.Pattern[str]:
    if field not in _labeled_cache:
        _labeled_cache[field] = re.compile(
            rf"(?<![A-Za-z]){_MARKUP}{FIELD_LABELS[field]}{_MARKUP}[ \t]*:[ \t]*{_MARKUP}[ \t]*(?P<value>[^\n]*)",
            re.IGNORECASE,
        )
    return _labeled_cache[field]


def _span_pattern(field: ResponseField) -> re.Pattern[str]:
    if field not in _span_cache:
        if field in SECTION_ORDER:
            later = SECTION_ORDER[SECTION_ORDER.index(field) + 1 :]
        else:
            later = SECTION_ORDER
        if later:
            stop = rf"(?=\n{_LEAD}{_MARKUP}(?:{'|'.join(FIELD_LABELS[f] for f in later)})\b|\Z)"
        else:
            stop = r"(?=\Z)"
        _span_cache[field] = re.compile(
            rf"^{_LEAD}{_MARKUP}{FIELD_LABELS[field]}\b{_MARKUP}[ \t]*:?[ \t]*{_MARKUP}\s*(?P<value>.+?){stop}",
            re.IGNORECASE | re.MULTILINE | re.DOTALL,
        )
    return _span_cache[field]


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    wrapped = _WRAPPED_RE.match(value)
    if wrapped:
        value = wrapped.group("inner").strip()
    return value or None


def _first_line(value: str | None) -> str | None:
    if value is None:
        return None
    lines = value.splitlines()
    return _clean(lines[0]) if lines else None


class ExtractorStrategy(Protocol):
    name: str

    def try_extract(self, field: ResponseField, text: str) -> str | None:
        """Return the raw section text for ``field`` or None."""


class LabeledFieldStrategy:
    """``Field: value`` with continuation lines up to the end of the paragraph."""

    name = "labeled_field"

    def __init__(self, single_line: bool = False) -> None:
        self.single_line = single_line

    def try_extract(self, field: ResponseField, text: str) -> str | None:
        match = _labeled_pattern(field).search(text)
        if not match:
            return None

        collected: list[str] = []
        first = match.group("value").strip()
        if first:
            collected.append(first)
            if self.single_line:
                return first

        for line in text[match.end() :].split("\n")[1:]:
            if _FIELD_START_RE.match(line) or _HEADING_RE.match(line):
                break
            if not line.strip():
                if collected:
                    break
                continue
            collected.append(line.rstrip())
            if self.single_line:
                break

        return _clean("\n".join(collected))


class SectionSpanStrategy:
    """Label at line start (colon optional) through to the next known section."""

    name = "section_span"

    def __init__(self, single_line: bool = False) -> None:
        self.single_line = single_line

    def try_extract(self, field: ResponseField, text: str) -> str | None:
        match = _span_pattern(field).search(text)
        if not match:
            return None
        value = match.group("value")
        return _first_line(value) if self.single_line else _clean(value)


class NumericGradeLineStrategy:
    """Unlabeled line such as ``9.4 Near Mint (NM)``."""

    name = "numeric_grade_line"

    def try_extract(self, field: ResponseField, text: str) -> str | None:
        if field is not ResponseField.GRADE:
            return None
        for match in _NUMERIC_GRADE_LINE_RE.finditer(text):
            if 0 <= float(match.group("number")) <= 10:
                return _clean(f"{match.group('number')} {match.group('label')}")
        return None


DEFAULT_CHAINS: dict[ResponseField, tuple[ExtractorStrategy, ...]] = {
    ResponseField.GRADE: (
        LabeledFieldStrategy(single_line=True),
        SectionSpanStrategy(single_line=True),
        NumericGradeLineStrategy(),
    ),
}
for _field in SECTION_ORDER:
    DEFAULT_CHAINS[_field] = (LabeledFieldStrategy(), SectionSpanStrategy())


@dataclass(frozen=True)
class ParsedResponse:
    grade: float | None
    grade_label_raw: str | None
    defects: str | None
    page_quality: str | None
    restoration: str | None
    repair: str | None
    prevention: str | None
    raw_response: str


def extract_field(
    field: ResponseField,
    text: str,
    chain: tuple[ExtractorStrategy, ...] | None = None,
) -> str | None:
    for strategy in chain or DEFAULT_CHAINS[field]:
        value = strategy.try_extract(field, text)
        if value is not None:
            logger.debug("response field extracted", extra={"field": field.value, "strategy": strategy.name})
            return value
    return None


def parse_grade(grade_text: str | float | int | None) -> float | None:
    """First number in ``grade_text`` if it lies in [0, 10], rounded half-up to 0.1."""
    if grade_text is None:
        return None

    match = _NUMBER_RE.search(str(grade_text).strip())
    if not match:
        return None
    value = Decimal(match.group(0))
    if value < 0 or value > 10:
        return None
    return float(value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def parse_ai_response(ai_response: str) -> ParsedResponse:
    """Pull the grading sections out of a free-form provider response."""
    grade_text = extract_field(ResponseField.GRADE, ai_response)
    parsed = ParsedResponse(
        grade=parse_grade(grade_text),
        grade_label_raw=grade_text,
        defects=extract_field(ResponseField.DEFECTS, ai_response),
        page_quality=extract_field(ResponseField.PAGE_QUALITY, ai_response),
        restoration=extract_field(ResponseField.RESTORATION, ai_response),
        repair=extract_field(ResponseField.REPAIR, ai_response),
        prevention=extract_field(ResponseField.PREVENTION, ai_response),
        raw_response=ai_response,
    )
    logger.debug(
        "response parse complete",
        extra={
            "has_grade": parsed.grade is not None,
            "has_defects": parsed.defects is not None,
            "has_page_quality": parsed.page_quality is not None,
            "has_restoration": parsed.restoration is not None,
            "has_repair": parsed.repair is not None,
            "has_prevention": parsed.prevention is not None,
        },
    )
    return parsed
