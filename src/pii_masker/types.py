"""Core types."""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

Source = Literal["pattern", "semantic", "user"]
Trigger = Literal["auto", "manual"]

# Static per-detector priorities.  Higher wins in overlap resolution.
PRIORITY_USER = 200
PRIORITY_CREDIT_CARD = 120
PRIORITY_SSN = 110
PRIORITY_EMAIL = 100
PRIORITY_PHONE = 90
PRIORITY_SEMANTIC = 90


class PiiMaskerError(Exception):
    """Base class for errors raised by pii-masker."""


class ConfigError(PiiMaskerError, ValueError):
    """Invalid configuration value."""


class SemanticServiceError(PiiMaskerError):
    """The semantic analysis service failed or returned garbage."""


@dataclass(frozen=True, slots=True)
class Match:
    """A single detected PII span."""
    detector_id: str
    source: Source
    entity_type: str       # e.g. "email", "contextual_pii"
    value: str             # literal text, used as cache/ignore key
    start_index: int
    end_index: int         # exclusive
    priority: int
    reason: str | None = None

    @property
    def length(self) -> int:
        return self.end_index - self.start_index

    def overlaps(self, other: Match) -> bool:
        return max(self.start_index, other.start_index) < min(self.end_index, other.end_index)

    def to_dict(self) -> dict[str, Any]:
        return {
            "detector_id": self.detector_id,
            "source": self.source,
            "entity_type": self.entity_type,
            "value": self.value,
            "start_index": self.start_index,
            "end_index": self.end_index,
            "priority": self.priority,
            "reason": self.reason,
        }


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """Metadata kept per literal value by the engine."""
    entity_type: str
    source: Source
    priority: int
    detector_id: str
    reason: str | None = None

    @classmethod
    def from_match(cls, match: Match) -> CacheEntry:
        return cls(
            entity_type=match.entity_type,
            source=match.source,
            priority=match.priority,
            detector_id=match.detector_id,
            reason=match.reason,
        )


@dataclass(slots=True)
class DetectionContext:
    """Where the scanned text came from.  Only used for logging and locale."""
    surface_id: str = "default"
    field_index: int = 0
    locale: str | None = None    # e.g. "en-US"; region part feeds phone validation

    @property
    def region(self) -> str | None:
        if not self.locale:
            return None
        parts = self.locale.replace("_", "-").split("-")
        return parts[-1].upper() if len(parts) > 1 else None


@dataclass(slots=True)
class SemanticFinding:
    """Raw finding returned by the semantic analysis service."""
    value: str
    entity_type: str
    reason: str | None = None
    is_masked: bool = False


class Fragment(Protocol):
    """Anything with mutable text, e.g. projection.TextNode."""
    text: str


@dataclass(frozen=True, slots=True)
class FragmentMapping:
    """Range of one fragment inside the flattened text.  Does not own the fragment."""
    fragment: Fragment
    start: int
    end: int


@dataclass(slots=True)
class MaskResult:
    """Result of masking flat text."""
    text: str
    changed: bool = False


@dataclass(slots=True)
class FragmentMaskResult:
    """Result of masking a fragment tree in place."""
    changed: bool = False
    fragments_changed: int = 0
    touched: list[Fragment] = field(default_factory=list)
