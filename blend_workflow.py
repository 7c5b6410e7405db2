"""Command-line helper that runs the mascot pipeline on a single photo.

It mirrors what the bot does for every incoming picture:

1. Normalize the photo and load the mascot.
2. Draft a local composite and try the configured generative blend.
3. Fall back to the full-resolution local composite if the blend fails.

Example usage::

    python blend_workflow.py --input photo.jpg --output out/pfp.png
    python blend_workflow.py --input https://example.com/cat.jpg --seed 7 --provider none
"""
from __future__ import annotations

import argparse
import asyncio
import json
import os
import random
from pathlib import Path
from typing import Any, Dict

import requests

from mascot_service.config import load_settings
from mascot_service.models import BlendOutcome, RawImage
from mascot_service.services.blend_provider.factory import build_provider
from mascot_service.services.mascot_cache import MascotCache
from mascot_service.services.orchestrator import BlendOrchestrator


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Insert the mascot into a photo")
    parser.add_argument(
        "--input",
        required=True,
        help="Path or http(s) URL of the photo to process",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("pfp.png"),
        help="Where to write the resulting PNG",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Seed for the placement planner (reproducible placement)",
    )
    parser.add_argument(
        "--provider",
        choices=["auto", "http", "openai", "genai", "none"],
        help="Override BLEND_PROVIDER for this run",
    )
    parser.add_argument(
        "--mascot",
        help="Override MASCOT_SOURCE for this run",
    )
    return parser.parse_args()


def load_input(source: str) -> RawImage:
    if source.lower().startswith(("http://", "https://")):
        response = requests.get(source, timeout=30)
        response.raise_for_status()
        media_type = response.headers.get("content-type", "").split(";")[0].strip()
        return RawImage(response.content, media_type)

    path = Path(source).expanduser()
    if not path.exists():
        raise FileNotFoundError(f"Input photo not found: {path}")
    return RawImage(path.read_bytes())


def build_orchestrator(args: argparse.Namespace) -> BlendOrchestrator:
    if args.provider:
        os.environ["BLEND_PROVIDER"] = args.provider
    settings = load_settings()
    source = args.mascot or settings.mascot.source
    return BlendOrchestrator(
        provider=build_provider(settings.blend),
        mascot_cache=MascotCache(source, timeout=settings.mascot.fetch_timeout),
        canvas=settings.canvas,
        placement=settings.placement,
        blend=settings.blend,
        rng=random.Random(args.seed) if args.seed is not None else None,
    )


def export_outcome(output: Path, outcome: BlendOutcome) -> Dict[str, Any]:
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(outcome.to_png())
    metadata = {
        "output": str(output.resolve()),
        "provenance": outcome.provenance.value,
        "attempts": outcome.attempts,
        "size": outcome.image.size,
        "request_id": outcome.request_id,
    }
    output.with_suffix(".json").write_text(json.dumps(metadata, indent=2), encoding="utf-8")
    return metadata


def main() -> None:
    args = parse_args()
    raw = load_input(args.input)
    orchestrator = build_orchestrator(args)

    outcome = asyncio.run(orchestrator.run(raw))
    metadata = export_outcome(args.output, outcome)

    print("=== Mascot blend ===")
    print(f"provenance : {metadata['provenance']}")
    print(f"attempts   : {', '.join(metadata['attempts']) or '-'}")
    print(f"output     : {metadata['output']} ({metadata['size']}x{metadata['size']})")


if __name__ == "__main__":
    main()
