"""Command line entry points: sync items/outlets, sync status, seed export, API server"""
import argparse
import asyncio
import sys
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, TypeVar

from alko_catalog.core.config import settings
from alko_catalog.core.context import AppContext
from alko_catalog.core.logging import logger
from alko_catalog.schemas.catalog_schema import SyncResult
from alko_catalog.services.impl.bootstrap import export_seed_bundle

T = TypeVar("T")


async def _with_context(action: Callable[[AppContext], Awaitable[T]]) -> T:
    context = AppContext.create(settings)
    try:
        return await action(context)
    finally:
        await context.aclose()


def _print_sync(result: SyncResult) -> int:
    print(f"success:   {result.success}")
    print(f"processed: {result.processed}")
    print(f"added:     {result.added}")
    print(f"updated:   {result.updated}")
    if result.errors:
        print(f"errors ({len(result.errors)}):")
        for error in result.errors[:20]:
            print(f"  - {error}")
        if len(result.errors) > 20:
            print(f"  ... and {len(result.errors) - 20} more")
    return 0 if result.success else 1


def cmd_sync_items(args: argparse.Namespace) -> int:
    result = asyncio.run(_with_context(lambda ctx: ctx.catalog.sync_items()))
    return _print_sync(result)


def cmd_sync_outlets(args: argparse.Namespace) -> int:
    result = asyncio.run(_with_context(lambda ctx: ctx.catalog.sync_outlets()))
    return _print_sync(result)


def cmd_status(args: argparse.Namespace) -> int:
    async def status(ctx: AppContext):
        return ctx.catalog.get_sync_status()

    result = asyncio.run(_with_context(status))
    print(f"last sync:   {result.last_sync or '-'}")
    print(f"last status: {result.last_status or '-'}")
    print(f"items:       {result.item_count}")
    return 0


def cmd_export_seed(args: argparse.Namespace) -> int:
    async def export(ctx: AppContext):
        return export_seed_bundle(ctx.session_factory, Path(args.output))

    bundle = asyncio.run(_with_context(export))
    print(f"Exported {len(bundle.items)} items and {len(bundle.outlets)} outlets to {args.output}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("alko_catalog.app:app", host=args.host, port=args.port, reload=False)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="alko-catalog", description="Alko catalog maintenance")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("sync-items", help="Download the price list and upsert items").set_defaults(func=cmd_sync_items)
    sub.add_parser("sync-outlets", help="Scrape the outlet listing").set_defaults(func=cmd_sync_outlets)
    sub.add_parser("status", help="Show the last sync run").set_defaults(func=cmd_status)

    export = sub.add_parser("export-seed", help="Write a seed bundle from the current store")
    export.add_argument("--output", default=settings.seed_data_path, help="Bundle path")
    export.set_defaults(func=cmd_export_seed)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    serve.set_defaults(func=cmd_serve)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger.info(f"[CLI] {args.command}")
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
