import argparse
import logging
import sys
from datetime import datetime

from cbutils import __version__
from cbutils.config import LOG_PATH, PREVIEW_LENGTH
from cbutils.errors import CBUtilsError
from cbutils.models import ContentType, HistoryEntry
from cbutils.utils import ensure_dirs, format_size, truncate_text

logger = logging.getLogger("cbutils")


def format_entry(entry: HistoryEntry) -> str:
    """One line of `cbutils list` output."""
    when = datetime.fromtimestamp(entry.timestamp / 1000).strftime("%Y-%m-%d %H:%M:%S")
    if entry.content_type == ContentType.TEXT:
        preview = truncate_text(entry.text, PREVIEW_LENGTH)
    else:
        preview = f"[Image: {entry.image_width}x{entry.image_height}]"
    source = f" via {entry.source_app}" if entry.source_app else ""
    return f"{entry.id:>6}  {when}  {preview}{source}"


def run_app() -> int:
    """Run the clipboard monitor in the foreground."""
    ensure_dirs()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(LOG_PATH),
            logging.StreamHandler(sys.stderr),
        ],
    )

    from cbutils.app import create_desktop_app

    app = create_desktop_app()
    app.on_history_changed(lambda: logger.debug("History changed"))
    app.run()
    return 0


def _open_app(with_clipboard: bool = False):
    if with_clipboard:
        from cbutils.app import create_desktop_app

        return create_desktop_app()

    from cbutils.app import CBUtilsApp

    return CBUtilsApp()


def list_entries(limit: int | None, query: str | None) -> int:
    app = _open_app()
    try:
        entries = app.commands.search(query, limit) if query else app.commands.list_history(limit)
    finally:
        app.close()
    if not entries:
        print("(No clipboard history)")
        return 0
    for entry in entries:
        print(format_entry(entry))
    return 0


def copy_entry(entry_id: int) -> int:
    app = _open_app(with_clipboard=True)
    try:
        app.commands.copy(entry_id)
    finally:
        app.close()
    print(f"Copied entry {entry_id} to the clipboard.")
    return 0


def delete_entry(entry_id: int) -> int:
    app = _open_app()
    try:
        app.commands.delete(entry_id)
    finally:
        app.close()
    print(f"Deleted entry {entry_id}.")
    return 0


def clear_history() -> int:
    app = _open_app()
    try:
        removed = app.commands.clear_all()
    finally:
        app.close()
    print(f"Cleared {removed} entries.")
    return 0


def purge_history(days: int) -> int:
    app = _open_app()
    try:
        removed = app.commands.purge_older_than(days)
    finally:
        app.close()
    print(f"Removed {removed} entries older than {days} days.")
    return 0


def show_stats() -> int:
    app = _open_app()
    try:
        stats = app.commands.usage_stats()
        count = app.ledger.count()
    finally:
        app.close()
    print(f"Entries:  {count}")
    print(f"Size:     {format_size(stats.total_size_bytes)}")
    print(f"Database: {stats.storage_location}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cbutils",
        description="cbutils - clipboard history manager",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  cbutils               # watch the clipboard in the foreground
  cbutils list -n 20    # show the 20 most recent entries
  cbutils copy 42       # put entry 42 back on the clipboard
  cbutils purge 7       # drop entries not used for a week
""",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="Watch the clipboard in the foreground (default)")

    list_parser = sub.add_parser("list", help="Show clipboard history, most recent first")
    list_parser.add_argument("-n", "--limit", type=int, default=None, help="Maximum entries to show")
    list_parser.add_argument("-s", "--search", default=None, help="Only text entries containing this")

    copy_parser = sub.add_parser("copy", help="Copy an entry back to the clipboard")
    copy_parser.add_argument("id", type=int)

    delete_parser = sub.add_parser("delete", help="Delete one entry")
    delete_parser.add_argument("id", type=int)

    sub.add_parser("clear", help="Delete all history")

    purge_parser = sub.add_parser("purge", help="Delete entries older than DAYS")
    purge_parser.add_argument("days", type=int)

    sub.add_parser("stats", help="Show storage usage")

    return parser


def main(argv: list[str] | None = None):
    args = build_parser().parse_args(argv)

    if args.command in (None, "run"):
        sys.exit(run_app())

    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    try:
        if args.command == "list":
            code = list_entries(args.limit, args.search)
        elif args.command == "copy":
            code = copy_entry(args.id)
        elif args.command == "delete":
            code = delete_entry(args.id)
        elif args.command == "clear":
            code = clear_history()
        elif args.command == "purge":
            code = purge_history(args.days)
        else:
            code = show_stats()
    except (CBUtilsError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
