"""DetectionEngine: the main API.  One instance per watched surface.

Usage:
    from pii_masker import DetectionEngine, mask_text

    engine = DetectionEngine(transport=my_transport)
    engine.add_rule("ACME-INTERNAL")

    matches = await engine.run("Mail jane@example.com", trigger="auto")
    result = mask_text("Mail jane@example.com", matches)
    print(result.text)            # "Mail ****************"

Every run re-derives positions from a literal dictionary instead of trusting
detector offsets.  Pattern and user rules re-scan the live text anyway;
semantic literals come from a cache filled by manual runs, so they keep
producing matches while the user edits without calling the service again.
"""

from __future__ import annotations
import inspect
import logging
from dataclasses import dataclass, field

from .base import Detector, find_all
from .patterns import DEFAULT_FALLBACK_REGIONS, PatternDetector, PhoneValidator
from .semantic import SemanticDetector, SemanticTransport
from .types import CacheEntry, DetectionContext, Match, Trigger
from .user_rules import UserRuleDetector

logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """Configuration for the DetectionEngine."""
    locale: str | None = None                      # e.g. "en-US"
    fallback_regions: tuple[str, ...] = DEFAULT_FALLBACK_REGIONS
    use_semantic: bool = True                      # needs a transport too
    semantic_cache_size: int | None = 1000         # None = unbounded
    phone_cache_size: int = 2000
    min_phone_digits: int = 7
    max_phone_digits: int = 15
    user_rules: list[str] = field(default_factory=list)


class DetectionEngine:
    """Runs the detectors, owns ignore list and semantic cache, resolves overlaps."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        transport: SemanticTransport | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.pattern_detector = PatternDetector(
            locale=self.config.locale,
            phone_validator=PhoneValidator(
                fallback_regions=self.config.fallback_regions,
                min_digits=self.config.min_phone_digits,
                max_digits=self.config.max_phone_digits,
                cache_size=self.config.phone_cache_size,
            ),
        )
        self.user_rule_detector = UserRuleDetector(self.config.user_rules)
        self.semantic_detector = (
            SemanticDetector(transport)
            if transport is not None and self.config.use_semantic
            else None
        )

        self._ignored: set[str] = set()
        self._semantic_cache: dict[str, CacheEntry] = {}
        self._running = False

    @property
    def detectors(self) -> tuple[Detector, ...]:
        detectors: list[Detector] = [self.pattern_detector, self.user_rule_detector]
        if self.semantic_detector is not None:
            detectors.append(self.semantic_detector)
        return tuple(detectors)

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    async def run(
        self,
        text: str,
        context: DetectionContext | None = None,
        trigger: Trigger = "auto",
    ) -> list[Match]:
        """Detect PII in text.  Returns non-overlapping matches sorted by start.

        A call arriving while another run is in flight returns [] at once.
        """
        if self._running:
            logger.debug("run skipped, previous run still in flight")
            return []

        context = context or DetectionContext(locale=self.config.locale)
        self._running = True
        try:
            return await self._run(text, context, trigger)
        finally:
            self._running = False

    async def _run(self, text: str, context: DetectionContext, trigger: Trigger) -> list[Match]:
        working: dict[str, CacheEntry] = dict(self._semantic_cache)

        for detector in self.detectors:
            try:
                result = detector.detect(text, context, trigger)
                if inspect.isawaitable(result):
                    result = await result
            except Exception:
                logger.exception(
                    "detector %s failed (surface=%s, field=%d)",
                    detector.id, context.surface_id, context.field_index,
                )
                continue

            for match in result:
                entry = CacheEntry.from_match(match)
                _merge(working, match.value, entry)
                if match.source == "semantic":
                    self._remember(match.value, entry)

        matches: list[Match] = []
        for value, entry in working.items():
            if value in self._ignored:
                continue
            for start, end in find_all(text, value):
                matches.append(Match(
                    detector_id=entry.detector_id,
                    source=entry.source,
                    entity_type=entry.entity_type,
                    value=value,
                    start_index=start,
                    end_index=end,
                    priority=entry.priority,
                    reason=entry.reason,
                ))

        final = resolve_overlaps(matches)
        if final:
            logger.info(
                "%d match(es) (surface=%s, field=%d, trigger=%s)",
                len(final), context.surface_id, context.field_index, trigger,
            )
        return final

    def _remember(self, value: str, entry: CacheEntry) -> None:
        if not _merge(self._semantic_cache, value, entry):
            return
        limit = self.config.semantic_cache_size
        if limit is not None:
            while len(self._semantic_cache) > limit:
                # dicts keep insertion order: drop the oldest literal
                del self._semantic_cache[next(iter(self._semantic_cache))]

    # ------------------------------------------------------------------
    # Ignore list
    # ------------------------------------------------------------------

    def ignore(self, value: str) -> None:
        if value:
            self._ignored.add(value)

    def unignore(self, value: str) -> None:
        self._ignored.discard(value)

    def list_ignored(self) -> list[str]:
        return sorted(self._ignored)

    def clear_ignored(self) -> None:
        self._ignored.clear()

    # ------------------------------------------------------------------
    # User rules
    # ------------------------------------------------------------------

    def add_rule(self, rule: str) -> bool:
        return self.user_rule_detector.add_rule(rule)

    def remove_rule(self, rule: str) -> bool:
        return self.user_rule_detector.remove_rule(rule)

    def list_rules(self) -> list[str]:
        return self.user_rule_detector.list_rules()

    def clear_rules(self) -> None:
        self.user_rule_detector.clear_rules()

    # ------------------------------------------------------------------
    # Semantic cache
    # ------------------------------------------------------------------

    @property
    def semantic_cache(self) -> dict[str, CacheEntry]:
        return dict(self._semantic_cache)

    def clear_semantic_cache(self) -> None:
        self._semantic_cache.clear()


def _merge(target: dict[str, CacheEntry], value: str, entry: CacheEntry) -> bool:
    """Store entry unless a higher-or-equal priority entry exists.  Returns True if stored."""
    existing = target.get(value)
    if existing is not None and existing.priority >= entry.priority:
        return False
    target[value] = entry
    return True


def resolve_overlaps(matches: list[Match]) -> list[Match]:
    """Greedy priority-first overlap removal.

    Ties keep discovery order (sorted() is stable).  The result is sorted by
    start index.
    """
    if not matches:
        return []
    taken: list[Match] = []
    for m in sorted(matches, key=lambda m: -m.priority):
        if not any(m.overlaps(t) for t in taken):
            taken.append(m)
    return sorted(taken, key=lambda m: m.start_index)
