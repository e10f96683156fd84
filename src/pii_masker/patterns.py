"""Pattern detector: regexes for structured PII plus validation gates.

Candidates are collected from every pattern, then claimed greedily by
priority and span length.  Credit cards must pass Luhn; phone candidates
must not look like dates or times and must validate with ``phonenumbers``
for at least one plausible region.
"""

from __future__ import annotations
import logging
import re
import unicodedata
from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable

import phonenumbers

from .base import Detector
from .types import (
    PRIORITY_CREDIT_CARD,
    PRIORITY_EMAIL,
    PRIORITY_PHONE,
    PRIORITY_SSN,
    DetectionContext,
    Match,
    Trigger,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PatternDefinition:
    name: str
    entity_type: str
    regex: re.Pattern
    priority: int


# Kept in descending priority order.
PII_PATTERNS: list[PatternDefinition] = [
    # Amex 4-6-5, Visa / MC / Discover 4-4-4-4 with optional separators
    PatternDefinition("Credit Card", "credit_card_number", re.compile(
        r"\b(?:3[47]\d{2}[\s\-]?\d{6}[\s\-]?\d{5}"
        r"|(?:4\d{3}|5[1-5]\d{2}|6011)[\s\-]?\d{4}[\s\-]?\d{4}[\s\-]?\d{4})\b"
    ), PRIORITY_CREDIT_CARD),

    PatternDefinition("SSN", "social_security_number", re.compile(
        r"\b\d{3}-\d{2}-\d{4}\b"
    ), PRIORITY_SSN),

    PatternDefinition("Email", "email", re.compile(
        r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}"
    ), PRIORITY_EMAIL),

    # Deliberately loose; PhoneValidator does the real work.
    # Must start the text or follow whitespace / a colon.
    PatternDefinition("Phone Number", "phone_number", re.compile(
        r"(?<![^\s:])[+(]?(?:\d[ \-().~;:]*){7,15}\d\b"
    ), PRIORITY_PHONE),
]

_EXOTIC_SPACES = re.compile("[\u2000-\u200B\u202F\u205F\u00A0]")
_PLUS_LOOKALIKES = re.compile("[\uFF0B\uFE62]")
_DASH_LOOKALIKES = re.compile("[\u2010\u2012\u2013\u2014\uFE63]")


def normalize_text(text: str) -> str:
    """NFKC plus whitespace / sign folding.  May change the length."""
    text = unicodedata.normalize("NFKC", text)
    text = _EXOTIC_SPACES.sub(" ", text)
    text = _PLUS_LOOKALIKES.sub("+", text)
    return _DASH_LOOKALIKES.sub("-", text)


def fold_text(text: str) -> str:
    """Same-length variant of normalize_text.

    Each character is folded on its own and kept as-is when NFKC would
    expand it, so offsets into the result are offsets into *text*.
    """
    if text.isascii():
        return text
    folded = []
    for char in text:
        norm = unicodedata.normalize("NFKC", char)
        folded.append(norm if len(norm) == 1 else char)
    text = _EXOTIC_SPACES.sub(" ", "".join(folded))
    text = _PLUS_LOOKALIKES.sub("+", text)
    return _DASH_LOOKALIKES.sub("-", text)


def luhn_check(number: str) -> bool:
    """Return True if the digits of *number* pass the Mod-10 checksum."""
    digits = [int(c) for c in number if c.isdigit()]
    if len(digits) < 13 or len(digits) > 19:
        return False
    total = 0
    for i, d in enumerate(reversed(digits)):
        if i % 2 == 1:
            d *= 2
            if d > 9:
                d -= 9
        total += d
    return total % 10 == 0


# ---------------------------------------------------------------------------
# Phone validation
# ---------------------------------------------------------------------------

_DATE_TIME = re.compile("|".join([
    # YYYY-MM-DD (optionally followed by a time-ish number)
    r"(?:^|\s)\d{4}[\-/\s](?:0?[1-9]|1[0-2])[\-/\s](?:0?[1-9]|[12]\d|3[01])(?:[\-/\s]+\d+)?(?:$|\s)",
    # DD-MM-YYYY
    r"(?:^|\s)(?:0?[1-9]|[12]\d|3[01])[\-/\s](?:0?[1-9]|1[0-2])[\-/\s]\d{4}(?:$|\s)",
    # YYYYMMDD
    r"(?:^|\s)(?:19|20)\d\d(?:0[1-9]|1[0-2])(?:0[1-9]|[12]\d|3[01])(?:$|\s)",
    # H:MM[:SS]
    r"(?:^|\s)\d{1,2}:\d{1,2}(?::\d{1,2})?(?:$|\s)",
]))
_TIMESTAMP = re.compile(r"\b(?:19|20)\d{2}(?:0[1-9]|1[0-2])[0-3]\d{4,}\b")
_EXTENSION = re.compile(r"(?:ext\.?|extension|x|#|;ext=|,)\s*\d+", re.IGNORECASE)
_LEADING_PLUS = re.compile(r"^\D*\+")

DEFAULT_FALLBACK_REGIONS = ("US", "KR")


def looks_like_date_or_time(value: str) -> bool:
    value = value.strip()
    return bool(_DATE_TIME.search(value) or _TIMESTAMP.search(value))


def phone_digits(value: str) -> str:
    """Digits of the main number, extension dropped, '+' kept as a prefix."""
    main = _EXTENSION.split(normalize_text(value).strip())[0]
    digits = re.sub(r"\D", "", main)
    return f"+{digits}" if main.startswith("+") else digits


class PhoneValidator:
    """Plausibility check for naive phone candidates.

    Region order: the locale's region, then a region-less parse when the
    candidate is written internationally, then the fallback regions.
    """

    __slots__ = ("fallback_regions", "min_digits", "max_digits", "_cache", "_cache_size")

    def __init__(
        self,
        *,
        fallback_regions: Iterable[str] = DEFAULT_FALLBACK_REGIONS,
        min_digits: int = 7,
        max_digits: int = 15,
        cache_size: int = 2000,
    ) -> None:
        if cache_size < 0:
            raise ValueError(f"cache_size must be >= 0, got {cache_size!r}")
        self.fallback_regions = tuple(r.upper() for r in fallback_regions)
        self.min_digits = min_digits
        self.max_digits = max_digits
        self._cache: OrderedDict[str, bool] = OrderedDict()
        self._cache_size = cache_size

    def is_valid(self, value: str, region: str | None = None) -> bool:
        if looks_like_date_or_time(value):
            return False

        key = phone_digits(value)
        digits = key.lstrip("+")
        if not digits or not (self.min_digits <= len(digits) <= self.max_digits):
            return False

        if region and self._check(value, digits, region):
            return True
        if _LEADING_PLUS.match(value.strip()) and self._check(value, digits, None):
            return True
        for fallback in self.fallback_regions:
            if fallback == region:
                continue
            if self._check(value, digits, fallback):
                return True
        return False

    def _check(self, value: str, digits: str, region: str | None) -> bool:
        cache_key = f"{region or 'ANY'}|{digits}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            self._cache.move_to_end(cache_key)
            return cached

        try:
            parsed = phonenumbers.parse(value, region)
            result = phonenumbers.is_possible_number(parsed) and phonenumbers.is_valid_number(parsed)
        except phonenumbers.NumberParseException:
            # Never log the raw value
            logger.debug("phone parse failed (region=%s, length=%d)", region or "ANY", len(digits))
            result = False

        if self._cache_size == 0:           # memo disabled
            return result
        if len(self._cache) >= self._cache_size:
            self._cache.popitem(last=False)
        self._cache[cache_key] = result
        return result

    @property
    def cache_size(self) -> int:
        return len(self._cache)


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------

class PatternDetector(Detector):
    """Regex detector for emails, phones, credit cards and SSNs."""

    id = "pattern-detector"
    label = "PII pattern detector"
    description = "Detects structured PII using prioritized regular expressions."

    def __init__(
        self,
        *,
        locale: str | None = None,
        patterns: list[PatternDefinition] | None = None,
        phone_validator: PhoneValidator | None = None,
    ) -> None:
        self.locale = locale
        self.patterns = sorted(patterns or PII_PATTERNS, key=lambda p: -p.priority)
        self.phone_validator = phone_validator or PhoneValidator()
        self._default_region = DetectionContext(locale=locale).region

    def detect(
        self,
        text: str,
        context: DetectionContext | None = None,
        trigger: Trigger = "auto",
    ) -> list[Match]:
        if not text:
            return []
        context = context or DetectionContext(locale=self.locale)
        region = context.region or self._default_region
        # Scan a same-length folded copy so offsets and values stay in *text*
        folded = fold_text(text)

        candidates: list[tuple[PatternDefinition, re.Match]] = []
        for pattern in self.patterns:
            for m in pattern.regex.finditer(folded):
                if m.group():
                    candidates.append((pattern, m))
        if not candidates:
            return []

        candidates.sort(key=lambda c: (-c[0].priority, -(c[1].end() - c[1].start()), c[1].start()))

        accepted: list[Match] = []
        for pattern, m in candidates:
            start, end = m.span()
            if any(max(start, a.start_index) < min(end, a.end_index) for a in accepted):
                continue
            if not self._validate(pattern, m.group(), region):
                continue
            accepted.append(Match(
                detector_id=self.id,
                source="pattern",
                entity_type=pattern.entity_type,
                value=text[start:end],
                start_index=start,
                end_index=end,
                priority=pattern.priority,
                reason=f"Matched PII pattern for {pattern.name}.",
            ))

        if accepted:
            logger.debug(
                "%s: %d match(es) (surface=%s, field=%d)",
                self.id, len(accepted), context.surface_id, context.field_index,
            )
        return sorted(accepted, key=lambda m: m.start_index)

    def _validate(self, pattern: PatternDefinition, value: str, region: str | None) -> bool:
        if pattern.entity_type == "credit_card_number":
            return luhn_check(value)
        if pattern.entity_type == "phone_number":
            return self.phone_validator.is_valid(value, region)
        return True


def scan_patterns(text: str, locale: str | None = None) -> list[Match]:
    """Run the pattern detector once with default settings."""
    return PatternDetector(locale=locale).detect(text)
