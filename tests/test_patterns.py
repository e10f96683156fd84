"""Tests for the pattern detector: regexes, Luhn and phone validation."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from pii_masker.patterns import (
    PatternDetector,
    PhoneValidator,
    fold_text,
    looks_like_date_or_time,
    luhn_check,
    normalize_text,
    phone_digits,
    scan_patterns,
)
from pii_masker.types import DetectionContext


# ── Email / SSN ──────────────────────────────────────────────────────

def test_email_detection():
    matches = scan_patterns("Contact me at alice@example.com please")
    assert len(matches) == 1
    assert matches[0].entity_type == "email"
    assert matches[0].value == "alice@example.com"
    assert matches[0].source == "pattern"
    assert (matches[0].start_index, matches[0].end_index) == (14, 31)


def test_ssn_beats_phone_on_same_digits():
    matches = scan_patterns("SSN: 123-45-6789")
    assert len(matches) == 1
    assert matches[0].entity_type == "social_security_number"
    assert matches[0].value == "123-45-6789"


def test_no_false_positive_on_clean_text():
    assert scan_patterns("The weather is nice today in Melbourne") == []


def test_empty_text():
    assert scan_patterns("") == []


# ── Credit cards ─────────────────────────────────────────────────────

def test_credit_card_passing_luhn():
    matches = scan_patterns("4111 1111 1111 1111")
    assert len(matches) == 1
    assert matches[0].entity_type == "credit_card_number"
    assert (matches[0].start_index, matches[0].end_index) == (0, 19)


def test_credit_card_failing_luhn_is_not_matched():
    assert scan_patterns("4111 1111 1111 1112") == []


def test_amex_with_dashes():
    matches = scan_patterns("Card: 3782-822463-10005")
    assert [m.entity_type for m in matches] == ["credit_card_number"]


def test_luhn_check():
    assert luhn_check("4111111111111111")
    assert luhn_check("4111-1111-1111-1111")
    assert not luhn_check("4111111111111112")
    assert not luhn_check("4242")            # too short


# ── Phones ───────────────────────────────────────────────────────────

def test_phone_with_locale_region():
    detector = PatternDetector()
    matches = detector.detect("Call (650) 253-0000 now", DetectionContext(locale="en-US"))
    assert len(matches) == 1
    assert matches[0].entity_type == "phone_number"
    assert matches[0].value == "(650) 253-0000"


def test_international_phone_without_locale():
    matches = scan_patterns("Office: +44 20 8366 1177")
    phones = [m for m in matches if m.entity_type == "phone_number"]
    assert len(phones) == 1
    assert phones[0].value == "+44 20 8366 1177"


def test_dates_are_not_phones():
    assert scan_patterns("Meeting on 2024-01-15 please") == []
    assert scan_patterns("Due 15-01-2024") == []
    assert scan_patterns("Build 20240115") == []


def test_short_digit_runs_are_not_phones():
    assert scan_patterns("call 1234 or email qwer") == []


def test_looks_like_date_or_time():
    assert looks_like_date_or_time("2024-01-15")
    assert looks_like_date_or_time("15/01/2024")
    assert looks_like_date_or_time("19991231")
    assert looks_like_date_or_time("9:30:15")
    assert not looks_like_date_or_time("(650) 253-0000")


def test_phone_digits_drops_extension_and_keeps_plus():
    assert phone_digits("+1 650-253-0000 ext. 12") == "+16502530000"
    assert phone_digits("(650) 253-0000") == "6502530000"


def test_phone_validator_digit_bounds():
    validator = PhoneValidator(min_digits=7, max_digits=15)
    assert not validator.is_valid("123456")
    assert not validator.is_valid("1234567890123456")


def test_phone_validator_cache_is_bounded():
    validator = PhoneValidator(fallback_regions=["US"], cache_size=2)
    validator.is_valid("(650) 253-0000")
    validator.is_valid("(212) 555-0100")
    validator.is_valid("(415) 555-0199")
    assert validator.cache_size == 2


def test_phone_validator_without_memo():
    validator = PhoneValidator(cache_size=0)
    assert validator.is_valid("(650) 253-0000", "US")
    assert validator.cache_size == 0


def test_phone_validator_rejects_negative_cache_size():
    with pytest.raises(ValueError):
        PhoneValidator(cache_size=-1)


# ── Normalization ────────────────────────────────────────────────────

def test_normalize_text_folds_lookalikes():
    assert normalize_text("a\u00a0b") == "a b"
    assert normalize_text("\uff0b1") == "+1"
    assert normalize_text("123\u2013456") == "123-456"
    assert normalize_text("plain ascii") == "plain ascii"


def test_fullwidth_plus_phone_is_normalized():
    text = "Tel \uff0b44 20 8366 1177"
    matches = scan_patterns(text)
    assert [(m.start_index, m.end_index) for m in matches] == [(4, 20)]
    # value is the caller's own text, not the folded form
    assert matches[0].value == "\uff0b44 20 8366 1177"
    assert text[4:20] == matches[0].value


def test_fold_text_keeps_length():
    text = "card \uff14111\u00a01111\u20131111 \ufb01"
    folded = fold_text(text)
    assert len(folded) == len(text)
    assert folded == "card 4111 1111-1111 \ufb01"     # ligature would expand, kept
    assert fold_text("plain ascii") == "plain ascii"


def test_nbsp_separated_card_reports_raw_offsets():
    text = "card 4111\u00a01111\u00a01111\u00a01111"
    matches = scan_patterns(text)
    assert [(m.entity_type, m.start_index, m.end_index) for m in matches] == [
        ("credit_card_number", 5, 24),
    ]
    assert matches[0].value == text[5:24]


# ── Ordering / overlap ───────────────────────────────────────────────

def test_results_sorted_and_non_overlapping():
    text = "SSN 123-45-6789, mail bob@test.com, card 4111111111111111"
    matches = scan_patterns(text)
    assert [m.entity_type for m in matches] == [
        "social_security_number", "email", "credit_card_number",
    ]
    for a, b in zip(matches, matches[1:]):
        assert a.end_index <= b.start_index
    for m in matches:
        assert text[m.start_index:m.end_index] == m.value
