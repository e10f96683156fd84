"""CLI interface for pii-masker, mostly for trying detectors by hand.

Usage:
    # Print detected spans as JSON
    echo 'Mail jane@example.com' | python -m pii_masker.cli scan

    # Mask everything detected in plain text
    echo 'SSN 123-45-6789' | python -m pii_masker.cli mask

    # Mask a rich-text (HTML) fragment without touching its markup
    echo '<p>Call <b>(650) 253</b>-0000</p>' | \
        python -m pii_masker.cli --locale en-US mask-html

    # Include the semantic detector (Presidio must be installed)
    echo 'Jane Doe lives in Paris' | python -m pii_masker.cli --manual scan
"""

from __future__ import annotations
import argparse
import asyncio
import json
import logging
import sys

from .config import engine_from_settings, load_config, load_from_yaml
from .engine import DetectionEngine
from .masking import mask_fragments, mask_text
from .projection import parse_html, project, to_html
from .types import DetectionContext, Match


def _build_engine(args: argparse.Namespace) -> tuple[DetectionEngine, dict]:
    cfg = load_from_yaml(args.config) if args.config else load_config({})
    if args.locale:
        cfg["locale"] = args.locale
    if not args.manual:
        cfg["semantic_enabled"] = False
    if args.mask_char:
        cfg["mask_char"] = args.mask_char

    engine = engine_from_settings(cfg)
    for rule in args.rule:
        engine.add_rule(rule)
    for value in args.ignore:
        engine.ignore(value)
    return engine, cfg


def _detect(engine: DetectionEngine, text: str, args: argparse.Namespace) -> list[Match]:
    context = DetectionContext(surface_id="cli", locale=engine.config.locale)
    trigger = "manual" if args.manual else "auto"
    return asyncio.run(engine.run(text, context, trigger))


def cmd_scan(args: argparse.Namespace) -> None:
    """Print matches for plain text on stdin."""
    engine, _ = _build_engine(args)
    text = sys.stdin.read()
    matches = _detect(engine, text, args)
    json.dump([m.to_dict() for m in matches], sys.stdout, ensure_ascii=False)
    sys.stdout.write("\n")


def cmd_mask(args: argparse.Namespace) -> None:
    """Mask plain text on stdin."""
    engine, cfg = _build_engine(args)
    text = sys.stdin.read()
    result = mask_text(text, _detect(engine, text, args), cfg["mask_char"])
    sys.stdout.write(result.text)


def cmd_mask_html(args: argparse.Namespace) -> None:
    """Mask an HTML fragment on stdin, keeping every tag in place."""
    engine, cfg = _build_engine(args)
    root = parse_html(sys.stdin.read())
    plain_text, mappings = project(root)
    mask_fragments(_detect(engine, plain_text, args), mappings, cfg["mask_char"])
    sys.stdout.write(to_html(root))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="pii-masker",
        description="Detect and mask PII in text fields",
    )
    parser.add_argument("--config", default=None, help="YAML config file")
    parser.add_argument("--locale", default=None, help="Locale, e.g. en-US")
    parser.add_argument("--rule", action="append", default=[], help="User rule literal (repeatable)")
    parser.add_argument("--ignore", action="append", default=[], help="Value to never flag (repeatable)")
    parser.add_argument("--manual", action="store_true", help="Manual run: include semantic detector")
    parser.add_argument("--mask-char", default=None, help="Mask character (default *)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log to stderr")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("scan", help="Print detected spans as JSON (text stdin)")
    sub.add_parser("mask", help="Mask plain text (text stdin)")
    sub.add_parser("mask-html", help="Mask an HTML fragment (HTML stdin)")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    cmds = {
        "scan": cmd_scan,
        "mask": cmd_mask,
        "mask-html": cmd_mask_html,
    }
    cmds[args.command](args)


if __name__ == "__main__":
    main()
