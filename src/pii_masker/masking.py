"""Length-preserving masking for flat text and for fragment trees.

Flat text:
    result = mask_text("SSN 123-45-6789", matches)
    result.text                   # "SSN ***********"

Fragment trees (see projection.py) are masked in place.  Only characters
inside existing fragments are overwritten; fragments are never merged,
split, removed or reordered.  The mappings must come from a fresh
``project()`` of the same tree, taken after the last edit.
"""

from __future__ import annotations
from typing import Iterable

from .types import FragmentMapping, FragmentMaskResult, Match, MaskResult

DEFAULT_MASK_CHAR = "*"


def _check_mask_char(mask_char: str) -> None:
    if len(mask_char) != 1:
        raise ValueError(f"mask_char must be a single character, got {mask_char!r}")


def _clamp(length: int, match: Match) -> tuple[int, int] | None:
    if match.end_index <= match.start_index:
        return None
    start = max(0, min(length, match.start_index))
    end = max(start, min(length, match.end_index))
    if start == end:
        return None
    return start, end


def mask_text(
    text: str,
    matches: Iterable[Match],
    mask_char: str = DEFAULT_MASK_CHAR,
) -> MaskResult:
    """Replace every matched span with mask_char.  Length is preserved."""
    _check_mask_char(mask_char)
    spans = sorted(
        (span for span in (_clamp(len(text), m) for m in matches) if span),
        key=lambda s: s[0],
    )
    if not text or not spans:
        return MaskResult(text=text, changed=False)

    parts: list[str] = []
    cursor = 0
    changed = False
    for start, end in spans:
        start = max(cursor, start)
        if end <= cursor:
            continue                      # swallowed by a previous span
        parts.append(text[cursor:start])
        parts.append(mask_char * (end - start))
        cursor = end
        changed = True
    parts.append(text[cursor:])
    return MaskResult(text="".join(parts), changed=changed)


def mask_fragments(
    matches: Iterable[Match],
    mappings: list[FragmentMapping],
    mask_char: str = DEFAULT_MASK_CHAR,
) -> FragmentMaskResult:
    """Mask matched spans inside the mapped fragments, in place."""
    _check_mask_char(mask_char)
    result = FragmentMaskResult()
    matches = sorted(matches, key=lambda m: m.start_index, reverse=True)
    if not matches or not mappings:
        return result

    for match in matches:
        for mapping in mappings:
            lo = max(match.start_index, mapping.start)
            hi = min(match.end_index, mapping.end)
            if lo >= hi:
                continue

            fragment = mapping.fragment
            original = fragment.text
            local_start = lo - mapping.start
            local_end = hi - mapping.start
            updated = original[:local_start] + mask_char * (local_end - local_start) + original[local_end:]
            if updated != original:
                fragment.text = updated
                result.changed = True
                if not any(f is fragment for f in result.touched):
                    result.touched.append(fragment)

    result.fragments_changed = len(result.touched)
    return result
