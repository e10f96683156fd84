"""Tests for config loading and the CLI."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import io
import json

import pytest

from pii_masker import cli
from pii_masker.config import create_engine, engine_from_settings, load_config, load_from_yaml
from pii_masker.semantic import PresidioTransport
from pii_masker.types import ConfigError, SemanticFinding


class FakeTransport:
    async def analyze(self, text):
        return [SemanticFinding("Jane", "name")]


# ── Config ───────────────────────────────────────────────────────────

def test_load_config_defaults():
    cfg = load_config({})
    assert cfg["locale"] is None
    assert cfg["fallback_regions"] == ("US", "KR")
    assert cfg["mask_char"] == "*"
    assert cfg["semantic_backend"] == "presidio"
    assert cfg["semantic_cache_size"] == 1000
    assert (cfg["min_phone_digits"], cfg["max_phone_digits"]) == (7, 15)


def test_load_config_nested_key():
    cfg = load_config({"pii_masker": {
        "locale": "ko-KR",
        "fallback_regions": ["us"],
        "semantic": {"enabled": False, "cache_size": None},
        "user_rules": ["ACME", ""],
    }})
    assert cfg["locale"] == "ko-KR"
    assert cfg["fallback_regions"] == ("US",)
    assert cfg["semantic_enabled"] is False
    assert cfg["semantic_cache_size"] is None
    assert cfg["user_rules"] == ["ACME"]


@pytest.mark.parametrize("data", [
    {"semantic": {"backend": "gpt"}},
    {"mask_char": "**"},
    {"phone": {"min_digits": 0}},
    {"phone": {"min_digits": 9, "max_digits": 8}},
    {"semantic": {"cache_size": -1}},
    {"fallback_regions": "US"},
    {"fallback_regions": ["US", 82]},
    {"semantic": {"score_threshold": "high"}},
    {"semantic": {"score_threshold": 1.5}},
])
def test_load_config_rejects_bad_values(data):
    with pytest.raises(ConfigError):
        load_config(data)


def test_load_from_yaml(tmp_path):
    path = tmp_path / "masker.yaml"
    path.write_text(
        "pii_masker:\n"
        "  locale: en-US\n"
        "  semantic:\n"
        "    backend: none\n"
        "  user_rules:\n"
        "    - PROJECT-X\n"
    )
    cfg = load_from_yaml(path)
    assert cfg["locale"] == "en-US"
    assert cfg["semantic_backend"] == "none"
    assert cfg["user_rules"] == ["PROJECT-X"]


def test_create_engine_wiring():
    engine = create_engine({"semantic": {"backend": "none"}, "user_rules": ["X1"]})
    assert engine.semantic_detector is None
    assert engine.list_rules() == ["X1"]

    engine = create_engine({"locale": "en-US"})
    assert isinstance(engine.semantic_detector.transport, PresidioTransport)
    assert engine.config.locale == "en-US"

    transport = FakeTransport()
    engine = create_engine({"semantic": {"backend": "none"}}, transport=transport)
    assert engine.semantic_detector.transport is transport

    engine = create_engine({"semantic": {"enabled": False}}, transport=transport)
    assert engine.semantic_detector is None


def test_engine_from_settings_uses_loaded_settings_as_is():
    cfg = load_config({"locale": "en-US", "semantic": {"backend": "none"}})
    cfg["user_rules"] = ["OVERRIDE"]
    engine = engine_from_settings(cfg)
    assert engine.list_rules() == ["OVERRIDE"]
    assert engine.config.locale == "en-US"
    assert engine.semantic_detector is None


# ── CLI ──────────────────────────────────────────────────────────────

def _cli(monkeypatch, capsys, argv, stdin):
    monkeypatch.setattr(sys, "stdin", io.StringIO(stdin))
    cli.main(argv)
    return capsys.readouterr().out


def test_cli_scan(monkeypatch, capsys):
    out = _cli(monkeypatch, capsys, ["--rule", "1234", "scan"], "call 1234 or mail bob@test.com")
    matches = json.loads(out)
    assert [(m["entity_type"], m["value"]) for m in matches] == [
        ("user_defined_pii", "1234"),
        ("email", "bob@test.com"),
    ]


def test_cli_mask_with_ignore(monkeypatch, capsys):
    out = _cli(
        monkeypatch, capsys,
        ["--ignore", "bob@test.com", "--mask-char", "#", "mask"],
        "SSN 123-45-6789, bob@test.com",
    )
    assert out == "SSN ###########, bob@test.com"


def test_cli_mask_html(monkeypatch, capsys):
    out = _cli(monkeypatch, capsys, ["mask-html"], "<p>mail <b>bob</b>@test.com</p>")
    assert out == "<p>mail <b>***</b>*********</p>"


def test_cli_mask_html_with_nbsp(monkeypatch, capsys):
    out = _cli(monkeypatch, capsys, ["mask-html"], "<p>card 4111&nbsp;1111&nbsp;1111&nbsp;1111</p>")
    assert out == "<p>card *******************</p>"
