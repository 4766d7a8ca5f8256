"""CLI entry point.

Usage:
    python -m flashsearch serve                       # launch the HTTP service
    python -m flashsearch mappings                    # show the mapping summary
    python -m flashsearch search QUERY --user EMAIL   # run a scoped search
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

from . import config

console = Console()


# ---------------------------------------------------------------------------
# Subcommand: serve
# ---------------------------------------------------------------------------

def cmd_serve(args: argparse.Namespace) -> None:
    """Launch the HTTP service."""
    import uvicorn

    from .web.app import create_app

    app = create_app()
    console.print(f"\n[bold]Starting flashsearch at http://{args.host}:{args.port}[/bold]")
    uvicorn.run(app, host=args.host, port=args.port)


# ---------------------------------------------------------------------------
# Subcommand: mappings
# ---------------------------------------------------------------------------

async def _show_mappings(indices: list[str]) -> bool:
    from .display import display_mapping_summary
    from .mappings import MappingSummaryCache
    from .store import create_client

    client = create_client()
    try:
        cache = MappingSummaryCache(client, indices)
        summary = await cache.refresh()
    finally:
        await client.close()
    display_mapping_summary(summary)
    return cache.get() is not None


def cmd_mappings(args: argparse.Namespace) -> None:
    """Refresh and display the exact-match mapping summary."""
    indices = [i.strip() for i in (args.index or "").split(",") if i.strip()]
    if not indices:
        indices = [config.TASKS_INDEX, config.ORGANIZATIONS_INDEX]
    if not asyncio.run(_show_mappings(indices)):
        console.print("[red]Could not read any index mapping.[/red]")
        sys.exit(1)


# ---------------------------------------------------------------------------
# Subcommand: search
# ---------------------------------------------------------------------------

async def _search(args: argparse.Namespace) -> dict:
    from .mappings import MappingSummaryCache
    from .query_builder import VisibilityScopedQueryBuilder
    from .search import SearchExecutor, SearchRequest, run_search
    from .store import create_client

    indices = (config.TASKS_INDEX, config.ORGANIZATIONS_INDEX)
    client = create_client()
    try:
        cache = MappingSummaryCache(client, indices)
        builder = VisibilityScopedQueryBuilder(cache, *indices)
        executor = SearchExecutor(client, indices)
        request = SearchRequest(
            query=args.query, user_email=args.user, limit=args.limit, debug=args.debug,
        )
        return await run_search(request, builder, executor)
    finally:
        await client.close()


def cmd_search(args: argparse.Namespace) -> None:
    """Run a visibility-scoped search as a given user."""
    from .display import display_results
    from .errors import FlashsearchError

    try:
        response = asyncio.run(_search(args))
    except FlashsearchError as exc:
        console.print(f"[red]Search failed: {exc.code}[/red]")
        sys.exit(1)

    display_results(response["results"])
    debug = response.get("debug")
    if debug:
        display_results(debug["unfiltered"], title="Without visibility filter")
        if debug.get("error"):
            console.print(f"[yellow]Unfiltered search failed: {debug['error']}[/yellow]")


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m flashsearch",
        description="Webhook indexing and scoped search for tasks and organizations",
    )
    sub = parser.add_subparsers(dest="command")

    # serve
    sv = sub.add_parser("serve", help="Launch the HTTP service")
    sv.add_argument("--host", default=config.HOST, help=f"Bind address (default: {config.HOST})")
    sv.add_argument("--port", type=int, default=config.PORT, help=f"Port (default: {config.PORT})")

    # mappings
    mp = sub.add_parser("mappings", help="Show which fields support exact matching")
    mp.add_argument("--index", help="Comma-separated index names (default: configured indices)")

    # search
    se = sub.add_parser("search", help="Run a search as a given user")
    se.add_argument("query", help="Free-text query")
    se.add_argument("--user", required=True, help="Caller email used for visibility")
    se.add_argument("--limit", type=int, default=config.SEARCH_DEFAULT_LIMIT,
                    help="Maximum number of results")
    se.add_argument("--debug", action="store_true",
                    help="Also show results without the visibility filter")

    return parser


def main() -> None:
    # Set up logging
    logging.basicConfig(
        level=logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )

    parser = build_parser()
    args = parser.parse_args()

    commands = {
        "serve": cmd_serve,
        "mappings": cmd_mappings,
        "search": cmd_search,
    }

    # Default to "serve" when no subcommand given
    command = args.command or "serve"
    if command == "serve" and args.command is None:
        args.host, args.port = config.HOST, config.PORT
    commands[command](args)


if __name__ == "__main__":
    main()
