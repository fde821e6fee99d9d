import argparse
import json
import logging
import sys
from typing import List, Optional

from .config import load_config
from .db import Database
from .errors import ArtShelfError
from .scanner import STATUS_SCANNING, ProgressChannel, ScanProgress, scan_library
from .search import search


def _print_progress(progress: ScanProgress) -> None:
    if progress.status == STATUS_SCANNING and progress.current_item:
        print(f"[{progress.current}/{progress.total}] {progress.current_item}", file=sys.stderr)


def _cmd_scan(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    db = Database(base_dir=config.data_dir)
    channel = ProgressChannel()
    if not args.quiet:
        channel.add_callback(_print_progress)
    result = scan_library(args.root or config.root_directory, db, config, channel)
    print(
        f"Indexed {result.indexed} assets ({result.images} images, {result.stories} stories) "
        f"from {result.artists} artists"
    )
    return 0


def _cmd_search(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    db = Database(base_dir=config.data_dir)
    result = search(db, args.query, args.text, page=args.page, page_size=args.limit or config.page_size)
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return 0
    for item in result.items:
        tags = ", ".join(item.tags) if item.tags else "-"
        suffix = f" ({len(item.pages)} pages)" if item.is_story else ""
        print(f"{item.artist} / {item.name}{suffix}  [{tags}]")
    print(f"page {result.page}/{result.total_pages}, {result.total} total")
    return 0


def _cmd_show(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    record = Database(base_dir=config.data_dir).get_asset(args.asset_id)
    if record is None:
        print(f"error: no asset with id {args.asset_id}", file=sys.stderr)
        return 1
    print(json.dumps(record.to_dict(), indent=2))
    return 0


def _cmd_tags(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    for tag in Database(base_dir=config.data_dir).all_tags():
        print(tag)
    return 0


def _cmd_reset(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    db = Database(base_dir=config.data_dir)
    removed = db.count_assets()
    db.wipe_all()
    print(f"Database cleared ({removed} assets removed)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="artshelf", description="Index and search an artist media library")
    parser.add_argument("--config", default=None, help="Path to artshelf_config.json")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ...)")
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Rescan the library root")
    scan.add_argument("--root", default=None, help="Override the configured root directory")
    scan.add_argument("--quiet", action="store_true", help="Do not print per-artist progress")
    scan.set_defaults(func=_cmd_scan)

    find = sub.add_parser("search", help="Search the catalog")
    find.add_argument("query", nargs="?", default="", help="Tag query, e.g. 'SFW, CG|3D, -Sketch'")
    find.add_argument("--text", default="", help="Artist or name contains")
    find.add_argument("--page", type=int, default=1)
    find.add_argument("--limit", type=int, default=None, help="Items per page")
    find.add_argument("--json", action="store_true", help="Print the page as JSON")
    find.set_defaults(func=_cmd_search)

    show = sub.add_parser("show", help="Print one indexed asset as JSON")
    show.add_argument("asset_id", type=int)
    show.set_defaults(func=_cmd_show)

    tags = sub.add_parser("tags", help="List every tag in the catalog")
    tags.set_defaults(func=_cmd_tags)

    reset = sub.add_parser("reset", help="Delete every indexed asset")
    reset.set_defaults(func=_cmd_reset)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except ArtShelfError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
