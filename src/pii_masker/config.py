"""YAML/dict config loader for pii-masker.

Supports loading from a YAML file or a plain dict (for embedding in a
larger host config).

Example YAML:

    pii_masker:
      locale: en-US
      fallback_regions: [US, KR]
      mask_char: "*"
      semantic:
        enabled: true
        backend: presidio        # "presidio" or "none"
        cache_size: 1000         # null = unbounded
        language: en
        score_threshold: 0.35
      phone:
        min_digits: 7
        max_digits: 15
        cache_size: 2000
      user_rules:
        - ACME-INTERNAL
"""

from __future__ import annotations
from pathlib import Path
from typing import Any

from .engine import DetectionEngine, EngineConfig
from .patterns import DEFAULT_FALLBACK_REGIONS
from .semantic import PresidioTransport, SemanticTransport
from .types import ConfigError

_BACKENDS = ("presidio", "none")


def _positive_int(value: Any, name: str, *, allow_none: bool = False) -> int | None:
    if value is None and allow_none:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"{name} must be a positive integer, got {value!r}")
    return value


def _regions(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)) or not all(isinstance(r, str) and r for r in value):
        raise ConfigError(f"fallback_regions must be a list of region codes, got {value!r}")
    return tuple(r.upper() for r in value)


def _threshold(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value <= 1:
        raise ConfigError(f"semantic.score_threshold must be a number in [0, 1], got {value!r}")
    return float(value)


def load_config(data: dict[str, Any]) -> dict[str, Any]:
    """Normalize a config dict (from YAML or inline)."""
    # Support nested under "pii_masker" key or flat
    if "pii_masker" in data:
        data = data["pii_masker"] or {}

    semantic = data.get("semantic") or {}
    phone = data.get("phone") or {}

    backend = semantic.get("backend", "presidio")
    if backend not in _BACKENDS:
        raise ConfigError(f"semantic.backend must be one of {_BACKENDS}, got {backend!r}")

    mask_char = data.get("mask_char", "*")
    if not isinstance(mask_char, str) or len(mask_char) != 1:
        raise ConfigError(f"mask_char must be a single character, got {mask_char!r}")

    cfg = {
        "locale": data.get("locale"),
        "fallback_regions": _regions(data.get("fallback_regions", DEFAULT_FALLBACK_REGIONS)),
        "mask_char": mask_char,
        "semantic_enabled": bool(semantic.get("enabled", True)),
        "semantic_backend": backend,
        "semantic_cache_size": _positive_int(
            semantic.get("cache_size", 1000), "semantic.cache_size", allow_none=True
        ),
        "semantic_language": semantic.get("language", "en"),
        "semantic_entities": semantic.get("entities"),
        "score_threshold": _threshold(semantic.get("score_threshold", 0.35)),
        "min_phone_digits": _positive_int(phone.get("min_digits", 7), "phone.min_digits"),
        "max_phone_digits": _positive_int(phone.get("max_digits", 15), "phone.max_digits"),
        "phone_cache_size": _positive_int(phone.get("cache_size", 2000), "phone.cache_size"),
        "user_rules": [str(r) for r in data.get("user_rules", []) if r],
    }
    if cfg["min_phone_digits"] > cfg["max_phone_digits"]:
        raise ConfigError("phone.min_digits must not exceed phone.max_digits")
    return cfg


def load_from_yaml(path: str | Path) -> dict[str, Any]:
    """Load config from a YAML file."""
    import yaml
    with open(path) as f:
        return load_config(yaml.safe_load(f) or {})


def create_engine(
    config: dict[str, Any] | None = None,
    *,
    transport: SemanticTransport | None = None,
) -> DetectionEngine:
    """Create a fully configured engine from a raw config dict (as in YAML)."""
    return engine_from_settings(load_config(config or {}), transport=transport)


def engine_from_settings(
    cfg: dict[str, Any],
    *,
    transport: SemanticTransport | None = None,
) -> DetectionEngine:
    """Build an engine from settings already returned by load_config.

    An explicit transport wins over the configured backend.
    """
    if transport is None and cfg["semantic_enabled"] and cfg["semantic_backend"] == "presidio":
        transport = PresidioTransport(
            language=cfg["semantic_language"],
            entities=cfg["semantic_entities"],
            score_threshold=cfg["score_threshold"],
        )

    engine_config = EngineConfig(
        locale=cfg["locale"],
        fallback_regions=cfg["fallback_regions"],
        use_semantic=cfg["semantic_enabled"],
        semantic_cache_size=cfg["semantic_cache_size"],
        phone_cache_size=cfg["phone_cache_size"],
        min_phone_digits=cfg["min_phone_digits"],
        max_phone_digits=cfg["max_phone_digits"],
        user_rules=list(cfg["user_rules"]),
    )
    return DetectionEngine(engine_config, transport=transport)
