"""Semantic detector: contextual PII from a slow analysis service.

Only runs on an explicit (manual) trigger.  The service returns literal
values rather than trustworthy positions, so every literal is re-located
in the text being scanned.

The default local backend is Presidio NER (names, locations, ...), using
spaCy under the hood.  Any object with an ``async analyze(text)`` method
can stand in for it, e.g. a client for a remote model.
"""

from __future__ import annotations
import inspect
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Protocol, Union

from .base import Detector, find_all
from .types import (
    PRIORITY_SEMANTIC,
    DetectionContext,
    Match,
    SemanticFinding,
    SemanticServiceError,
    Trigger,
)

if TYPE_CHECKING:
    from presidio_analyzer import AnalyzerEngine

logger = logging.getLogger(__name__)

# Partially masked credentials are still worth flagging.
CREDENTIAL_TYPES = frozenset({
    "password", "passcode", "passphrase", "secret", "token",
    "api_key", "apikey", "credential", "credentials",
})


class SemanticTransport(Protocol):
    async def analyze(self, text: str) -> list[SemanticFinding]: ...


def _type_key(entity_type: str) -> str:
    return entity_type.strip().lower().replace("-", "_").replace(" ", "_")


def is_credential_type(entity_type: str) -> bool:
    return _type_key(entity_type) in CREDENTIAL_TYPES


def map_entity_type(entity_type: str) -> str:
    """Fold a service classification into the semantic vocabulary."""
    key = _type_key(entity_type)
    if key in ("email", "email_address"):
        return "email"
    if key in ("phone", "phone_number", "telephone"):
        return "phone_number"
    return "contextual_pii"


def finding_from_dict(item: dict[str, Any]) -> SemanticFinding:
    """Build a finding from the transport's wire shape.

    Accepts ``value``/``pii_value`` and ``entity_type``/``type``/``pii_type``.
    """
    value = item.get("value", item.get("pii_value"))
    entity_type = item.get("entity_type", item.get("type", item.get("pii_type")))
    if not isinstance(value, str) or not isinstance(entity_type, str):
        raise SemanticServiceError("malformed finding from semantic service")
    return SemanticFinding(
        value=value,
        entity_type=entity_type,
        reason=item.get("reason"),
        is_masked=bool(item.get("is_masked", False)),
    )


class SemanticDetector(Detector):
    id = "semantic-detector"
    label = "Semantic detector"
    description = "Asks an analysis service for contextual PII such as names, addresses or secrets."

    def __init__(self, transport: SemanticTransport) -> None:
        self.transport = transport

    async def detect(
        self,
        text: str,
        context: DetectionContext | None = None,
        trigger: Trigger = "auto",
    ) -> list[Match]:
        if trigger != "manual" or not text:
            return []
        context = context or DetectionContext()

        try:
            findings = await self.transport.analyze(text)
        except Exception:
            logger.exception(
                "%s: semantic service failed (surface=%s, field=%d)",
                self.id, context.surface_id, context.field_index,
            )
            return []

        logger.debug(
            "%s: %d raw finding(s) (surface=%s, field=%d)",
            self.id, len(findings), context.surface_id, context.field_index,
        )

        matches: list[Match] = []
        for finding in findings:
            if finding.is_masked and not is_credential_type(finding.entity_type):
                continue
            if not finding.value:
                continue
            entity_type = map_entity_type(finding.entity_type)
            for start, end in find_all(text, finding.value):
                matches.append(Match(
                    detector_id=self.id,
                    source="semantic",
                    entity_type=entity_type,
                    value=finding.value,
                    start_index=start,
                    end_index=end,
                    priority=PRIORITY_SEMANTIC,
                    reason=finding.reason,
                ))
        return matches


# ---------------------------------------------------------------------------
# Transports
# ---------------------------------------------------------------------------

FindingsFn = Callable[[str], Union[list[dict], Awaitable[list[dict]]]]


class CallableTransport:
    """Adapts a plain (sync or async) function returning finding dicts."""

    def __init__(self, fn: FindingsFn) -> None:
        self._fn = fn

    async def analyze(self, text: str) -> list[SemanticFinding]:
        result = self._fn(text)
        if inspect.isawaitable(result):
            result = await result
        if not isinstance(result, list):
            raise SemanticServiceError("semantic service returned a non-list payload")
        return [finding_from_dict(item) for item in result]


def transport_from_callable(fn: FindingsFn) -> CallableTransport:
    return CallableTransport(fn)


# Lazy engine cache; don't load spaCy until first use
_engine: AnalyzerEngine | None = None
_engine_lang: str = ""


def _get_engine(language: str = "en") -> AnalyzerEngine:
    """Lazy-init the Presidio analyzer engine."""
    global _engine, _engine_lang
    if _engine is None or _engine_lang != language:
        from presidio_analyzer import AnalyzerEngine
        from presidio_analyzer.nlp_engine import NlpEngineProvider

        provider = NlpEngineProvider(nlp_configuration={
            "nlp_engine_name": "spacy",
            "models": [{"lang_code": language, "model_name": f"{language}_core_web_sm"}],
        })
        _engine = AnalyzerEngine(nlp_engine=provider.create_engine(), supported_languages=[language])
        _engine_lang = language
    return _engine


# Structured types are left to the pattern detector.
DEFAULT_ENTITIES = [
    "PERSON",
    "LOCATION",
    "NRP",           # nationality, religious, political group
    "MEDICAL_LICENSE",
    "US_BANK_NUMBER",
    "US_PASSPORT",
    "IBAN_CODE",
]


class PresidioTransport:
    """Local analysis service backed by Presidio NER."""

    def __init__(
        self,
        *,
        language: str = "en",
        entities: list[str] | None = None,
        score_threshold: float = 0.35,
    ) -> None:
        self.language = language
        self.entities = entities or DEFAULT_ENTITIES
        self.score_threshold = score_threshold

    async def analyze(self, text: str) -> list[SemanticFinding]:
        try:
            results = _get_engine(self.language).analyze(
                text=text,
                language=self.language,
                entities=self.entities,
                score_threshold=self.score_threshold,
            )
        except ImportError as exc:
            raise SemanticServiceError("presidio-analyzer is not installed") from exc

        return [
            SemanticFinding(
                value=text[r.start:r.end],
                entity_type=r.entity_type,
                reason=f"Presidio {r.entity_type} (score {r.score:.2f})",
            )
            for r in sorted(results, key=lambda r: r.start)
        ]
