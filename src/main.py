# src/main.py - v3
"""CLI entry point: summarize, test-connection, providers commands.

Usage:
    pagedigest summarize <file> [options]
    pagedigest test-connection [--provider ID] [--model NAME]
    pagedigest providers
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from pagedigest.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        args.settings = _load_settings(args)
        _setup_logging(args.verbose, args.settings)
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="pagedigest",
        description=f"pagedigest v{__version__} - LLM page summarizer",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- summarize ---
    p_summarize = subparsers.add_parser(
        "summarize", help="Summarize a page (.json PageContent or plain text)",
    )
    p_summarize.add_argument("file", type=Path, help="Path to page content")
    _add_provider_args(p_summarize)
    p_summarize.add_argument("--title", default=None, help="Page title (plain text input)")
    p_summarize.add_argument("--url", default=None, help="Page URL (plain text input)")
    p_summarize.add_argument(
        "--language", default=None,
        help="Summary language: 'auto' or an ISO code (default: from settings)",
    )
    p_summarize.add_argument(
        "--detail", choices=("brief", "standard", "detailed"), default=None,
        help="Summary detail level (default: from settings)",
    )
    p_summarize.add_argument(
        "--context-window", type=int, default=None,
        help="Model context window in tokens (default: provider default)",
    )
    p_summarize.add_argument(
        "--instructions", default=None,
        help="Extra instructions with the highest priority",
    )
    p_summarize.set_defaults(func=_cmd_summarize)

    # --- test-connection ---
    p_test = subparsers.add_parser(
        "test-connection", help="Check that the configured provider answers",
    )
    _add_provider_args(p_test)
    p_test.set_defaults(func=_cmd_test_connection)

    # --- providers ---
    p_providers = subparsers.add_parser(
        "providers", help="List registered providers",
    )
    p_providers.set_defaults(func=_cmd_providers)

    return parser


def _add_provider_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--provider", default=None, help="Provider id (default: from settings)")
    parser.add_argument("--model", default=None, help="Model name (default: from settings)")


def _load_settings(args: argparse.Namespace):
    from pagedigest.config.settings import load_settings

    overrides: dict[str, object] = {}
    if getattr(args, "provider", None):
        overrides["llm_provider"] = args.provider
    if getattr(args, "model", None):
        overrides["llm_model"] = args.model
    return load_settings(**overrides)


async def _cmd_summarize(args: argparse.Namespace) -> int:
    """Summarize one page and print the document as JSON."""
    from pagedigest.api.facade import create_engine, user_message
    from pagedigest.api.models import SummarizeRequest
    from pagedigest.llm.errors import PageDigestError

    file_path: Path = args.file
    if not file_path.exists():
        logger.error("File not found: %s", file_path)
        return 1

    content = _read_content(file_path, args.title, args.url)
    engine = create_engine(args.settings)
    request = SummarizeRequest(
        detail_level=args.detail,
        language=args.language,
        context_window=args.context_window,
        user_instructions=args.instructions,
    )

    logger.info("Summarizing %s (%d chars)", file_path.name, len(content.content))
    try:
        doc = await engine.summarize(content, request)
    except PageDigestError as exc:
        message = user_message(exc)
        if message:
            print(message, file=sys.stderr)
        return 2

    print(json.dumps(doc.to_wire(), indent=2, ensure_ascii=False))
    return 0


async def _cmd_test_connection(args: argparse.Namespace) -> int:
    """Send a trivial prompt to the configured provider."""
    from pagedigest.llm.client_factory import create_client_from_settings

    client = create_client_from_settings(args.settings)
    ok = await client.test_connection()
    print(f"{client.provider_name} ({client.model}): {'OK' if ok else 'FAILED'}")
    return 0 if ok else 1


async def _cmd_providers(args: argparse.Namespace) -> int:
    """Print the provider registry."""
    from pagedigest.llm.client_factory import list_providers

    print(f"\n{'ID':<14}{'Name':<16}{'Context':>10}  Endpoint")
    for definition in list_providers():
        key = "" if definition.requires_api_key else " (no key)"
        print(
            f"{definition.id:<14}{definition.name:<16}"
            f"{definition.default_context_window:>10}  {definition.default_endpoint}{key}"
        )
    return 0


def _read_content(path: Path, title: str | None, url: str | None):
    """Load a PageContent from JSON, or wrap plain text in one."""
    from pagedigest.core.models import PageContent

    raw = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        content = PageContent.model_validate_json(raw)
        update = {k: v for k, v in (("title", title), ("url", url)) if v}
        return content.model_copy(update=update) if update else content
    return PageContent(
        type="article",
        title=title or path.stem,
        url=url or path.resolve().as_uri(),
        content=raw,
        word_count=len(raw.split()),
    )


def _setup_logging(verbose: bool, settings) -> None:
    """Configure logging for CLI usage from the log_* settings."""
    from pagedigest.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
