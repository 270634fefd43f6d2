"""
main.py – romcatalog command-line entry point.

Wires a CatalogService to a shared httpx client and prints platforms, titles
or cover URLs.  The UI layer talks to CatalogService directly; this is the
quickest way to exercise it from a terminal.

    python main.py platforms
    python main.py titles "Nintendo - Game Boy" --search tetris
    python main.py cover "Tetris (World)"
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import httpx

from services.catalog_service import CatalogService, builtin_platforms, search
from services.config import Settings
from services.exceptions import CatalogError

log = logging.getLogger("romcatalog")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="romcatalog",
        description="Browse the ROM archive catalogue.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    platforms = sub.add_parser("platforms", help="List platform directories.")
    platforms.add_argument(
        "--builtin", action="store_true", help="Print the built-in list without crawling."
    )

    titles = sub.add_parser("titles", help="List titles for one platform.")
    titles.add_argument("platform", help='Exact archive directory, e.g. "Nintendo - Game Boy".')
    titles.add_argument("-s", "--search", default="", help="Filter by title, region or language.")
    titles.add_argument("--covers", action="store_true", help="Resolve a cover for each title.")

    cover = sub.add_parser("cover", help="Resolve a cover image URL.")
    cover.add_argument("title", nargs="+", help="One or more titles.")
    return parser


async def _run(args: argparse.Namespace) -> int:
    settings = Settings.from_env()
    timeout = httpx.Timeout(settings.http_timeout)
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        service = CatalogService(settings, client=client)

        if args.command == "platforms":
            platforms = builtin_platforms() if args.builtin else await service.list_platforms()
            for platform in platforms:
                print(f"{platform.display_name:<40} {platform.name}")
            return 0 if platforms else 1

        if args.command == "titles":
            entries = search(await service.list_titles(args.platform), args.search)
            covers = {}
            if args.covers:
                covers = await service.prefetch_covers([e.title for e in entries])
            for entry in entries:
                line = str(entry)
                if entry.title in covers:
                    line += f"  {covers[entry.title]}"
                print(line)
            log.info("%d titles listed.", len(entries))
            return 0 if entries else 1

        if args.command == "cover":
            for title, url in (await service.prefetch_covers(args.title)).items():
                print(f"{title}: {url}")
            return 0

    return 2


def main(argv: Optional[List[str]] = None) -> None:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        code = asyncio.run(_run(args))
    except CatalogError as exc:
        log.error("%s", exc)
        code = 2
    sys.exit(code)


if __name__ == "__main__":
    main()
