"""PII Masker: detect, reconcile and mask PII in editable text surfaces."""

from .engine import DetectionEngine, EngineConfig, resolve_overlaps
from .patterns import PatternDetector, PhoneValidator, luhn_check, fold_text, normalize_text, scan_patterns
from .user_rules import UserRuleDetector
from .semantic import CallableTransport, PresidioTransport, SemanticDetector, transport_from_callable
from .masking import mask_fragments, mask_text
from .projection import Element, TextNode, parse_html, project, to_html
from .config import create_engine, engine_from_settings, load_config, load_from_yaml
from .types import (
    ConfigError,
    DetectionContext,
    FragmentMapping,
    Match,
    PiiMaskerError,
    SemanticFinding,
    SemanticServiceError,
)

__all__ = [
    "DetectionEngine", "EngineConfig", "resolve_overlaps",
    "PatternDetector", "PhoneValidator", "luhn_check", "fold_text", "normalize_text", "scan_patterns",
    "UserRuleDetector",
    "SemanticDetector", "CallableTransport", "PresidioTransport", "transport_from_callable",
    "mask_text", "mask_fragments",
    "Element", "TextNode", "parse_html", "project", "to_html",
    "create_engine", "engine_from_settings", "load_config", "load_from_yaml",
    "Match", "DetectionContext", "FragmentMapping", "SemanticFinding",
    "PiiMaskerError", "ConfigError", "SemanticServiceError",
]
__version__ = "0.1.0"
