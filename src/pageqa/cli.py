"""Interactive command line entrypoint for the PageQA pipeline."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Callable, Sequence

from pageqa.config import Settings, get_settings
from pageqa.metrics.observability import configure_logging
from pageqa.services.pipeline import PipelineOutcome, build_pipeline

URL_PROMPT = "Enter the URL to fetch content: "


def _ask(message: str) -> str:
    return input(message)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Answer a question about the content of a web page.")
    parser.add_argument("--url", type=str, default=None, help="Page to fetch; prompted for when omitted")
    parser.add_argument("--question", type=str, default=None, help="Question to answer; prompted for when omitted")
    parser.add_argument(
        "--persist",
        action="store_true",
        help="Store chunk embeddings in the configured Chroma collection",
    )
    parser.add_argument("--verbose", action="store_true", help="Emit debug logs")
    return parser.parse_args(argv)


def run_pipeline(
    url: str | None,
    question: str | None,
    *,
    settings: Settings,
    prompt: Callable[[str], str] = _ask,
) -> PipelineOutcome:
    if url is None:
        url = prompt(URL_PROMPT)
    pipeline = build_pipeline(settings, prompt=prompt)
    return asyncio.run(pipeline.run(url, question))


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    settings = get_settings()
    configure_logging(logging.DEBUG if args.verbose else logging.INFO, json_logs=settings.log_json)
    if args.persist and not settings.persist_embeddings:
        settings = settings.model_copy(update={"persist_embeddings": True})
    try:
        outcome = run_pipeline(args.url, args.question, settings=settings)
    except (KeyboardInterrupt, EOFError):
        print("\nAborted.", file=sys.stderr)
        return 130
    return 0 if outcome.succeeded else 1


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
