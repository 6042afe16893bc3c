"""Command-line entry point: run one query through the engine and print JSON.

    knowledge-engine "weather in paris and time in tokyo"
    knowledge-engine --fallback-only "who discovered penicillin"
    knowledge-engine --analyze-only "convert 100 usd to eur"
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

import structlog

from knowledge_engine.core.config import settings
from knowledge_engine.core.logging_setup import configure_logging
from knowledge_engine.services.knowledge import build_knowledge_service

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="knowledge-engine",
        description="Answer a free-text query from public information sources.",
    )
    parser.add_argument("query", help="free-text query")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--analyze-only", action="store_true", help="print the intent analysis and exit"
    )
    mode.add_argument(
        "--fallback-only", action="store_true", help="skip categorized sources, run web fallback"
    )
    parser.add_argument(
        "--budget",
        type=float,
        default=None,
        help=f"fan-out budget in seconds (default {settings.ORCHESTRATOR_BUDGET})",
    )
    return parser


async def run(args: argparse.Namespace) -> dict:
    service = build_knowledge_service()
    if args.analyze_only:
        return service.analyze(args.query).model_dump(mode="json")

    await service.start()
    try:
        if args.fallback_only:
            outcome = await service.find_best_answer(args.query)
            return outcome.model_dump(mode="json")
        knowledge = await service.query(args.query, budget=args.budget)
        payload = knowledge.model_dump(mode="json")
        payload["sources_used"] = knowledge.sources_used
        return payload
    finally:
        await service.aclose()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(settings.LOG_LEVEL)
    payload = asyncio.run(run(args))
    json.dump(payload, sys.stdout, indent=2, ensure_ascii=False, default=str)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
