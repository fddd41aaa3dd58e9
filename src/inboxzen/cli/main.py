"""
Command-line interface for conversation classification.

Usage:
    # Classify one snippet
    inboxzen classify "We have a great job opportunity, are you hiring?"

    # Replay a JSONL event log through the incremental pipeline
    inboxzen replay events.jsonl --interval-ms 0

    # Inspect or clear the category cache
    inboxzen cache stats
    inboxzen cache clear

Replay log format, one JSON object per line:

    {"op": "add", "item_id": "c1", "text": "...", "sender": "...", "subject": "...", "unread": true}
    {"op": "update", "item_id": "c1", "text": "..."}
    {"op": "mark_unread", "item_id": "c1"}
    {"op": "mark_read", "item_id": "c1"}
    {"op": "remove", "item_id": "c1"}
    {"op": "notify"}
    {"op": "scan"}
    {"op": "filter", "category": "Sales"}
    {"op": "shortcut", "key": "j"}
    {"op": "wait", "ms": 500}

The first "scan" is the session's initial scan.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from inboxzen.config import settings
from inboxzen.logging_config import setup_logging
from inboxzen.models.category import parse_category
from inboxzen.models.events import DocumentEvent, EventKind
from inboxzen.pipeline.adapters import InMemoryDocument, LabelBoard
from inboxzen.pipeline.filters import FilterView
from inboxzen.pipeline.orchestrator import Pipeline
from inboxzen.pipeline.session import SessionContext, build_pipeline, open_session
from inboxzen.storage.kv_store import InMemoryKeyValueStore, KeyValueStore


logger = structlog.get_logger(__name__)


class ReplayError(Exception):
    """Malformed replay log entry."""


# ============================================================================
# SESSION
# ============================================================================

def _open(args: argparse.Namespace) -> SessionContext:
    backend: Optional[KeyValueStore] = None
    config = settings
    if args.memory:
        backend = InMemoryKeyValueStore()
    elif args.store_url:
        config = settings.model_copy(update={"store_url": args.store_url})
    return open_session(backend=backend, config=config)


# ============================================================================
# COMMANDS
# ============================================================================

async def run_classify(args: argparse.Namespace) -> Dict[str, Any]:
    session = _open(args)
    try:
        outcome = await session.classifier.classify_detailed(args.text, args.sender, args.subject)
        if args.item_id:
            session.store.set(args.item_id, outcome.category)
        return {
            "category": outcome.category.value,
            "source": outcome.source,
            "scores": outcome.scores,
            "item_id": args.item_id,
        }
    finally:
        await session.aclose()


def load_replay_log(path: Path) -> List[Dict[str, Any]]:
    """
    Read a JSONL replay log.

    Raises:
        ReplayError: If a line is not a JSON object with an "op"
    """
    entries = []
    with open(path, "r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError as e:
                raise ReplayError(f"line {line_number}: {e}") from e
            if not isinstance(entry, dict) or "op" not in entry:
                raise ReplayError(f"line {line_number}: expected an object with an 'op' field")
            entries.append(entry)
    return entries


def _view_dict(view: Optional[FilterView]) -> Optional[Dict[str, Any]]:
    if view is None:
        return None
    return {
        "category": view.category.value if view.category else None,
        "visible": view.visible,
        "hidden": view.hidden,
    }


async def apply_replay_entry(
    pipeline: Pipeline,
    document: InMemoryDocument,
    entry: Dict[str, Any],
    state: Dict[str, Any],
) -> None:
    """
    Apply one log entry: mutate the document, then feed the matching event to
    the pipeline.
    """
    op = entry["op"]
    item_id = entry.get("item_id", "")

    if op in ("update", "mark_unread", "mark_read") and document.read_content(item_id) is None:
        raise ReplayError(f"{op}: unknown item {item_id!r}")

    if op == "add":
        document.add_item(
            item_id,
            text=entry.get("text", ""),
            sender=entry.get("sender", ""),
            subject=entry.get("subject", ""),
            unread=bool(entry.get("unread", False)),
            emit=False,
        )
        event = DocumentEvent(kind=EventKind.ITEM_ADDED, item_id=item_id)
    elif op == "update":
        document.update_text(item_id, entry.get("text", ""), emit=False)
        event = DocumentEvent(kind=EventKind.ITEM_CHANGED, item_id=item_id)
    elif op == "mark_unread":
        document.mark_unread(item_id, emit=False)
        event = DocumentEvent(kind=EventKind.UNREAD_INDICATOR_APPEARED, item_id=item_id)
    elif op == "mark_read":
        document.mark_read(item_id, emit=False)
        event = DocumentEvent(kind=EventKind.UNREAD_INDICATOR_REMOVED, item_id=item_id)
    elif op == "remove":
        document.remove_item(item_id, emit=False)
        event = DocumentEvent(kind=EventKind.ITEM_REMOVED, item_id=item_id)
    elif op == "notify":
        event = DocumentEvent(kind=EventKind.GLOBAL_NOTIFICATION)
    elif op == "scan":
        if state.get("scanned"):
            await pipeline.on_scan()
        else:
            await pipeline.on_initial_scan()
            state["scanned"] = True
        return
    elif op == "filter":
        category = parse_category(entry.get("category"))
        if category is None:
            state["filter"] = _view_dict(pipeline.clear_filter())
        else:
            state["filter"] = _view_dict(pipeline.on_filter_request(category))
        return
    elif op == "shortcut":
        view = pipeline.on_shortcut(entry.get("key", ""))
        if view is not None:
            state["filter"] = _view_dict(view)
        return
    elif op == "wait":
        await asyncio.sleep(float(entry.get("ms", 0)) / 1000)
        return
    else:
        raise ReplayError(f"unknown op: {op}")

    await pipeline.handle_event(event)
    # Let freshly scheduled polls take their first look
    await asyncio.sleep(0)


async def run_replay(args: argparse.Namespace) -> Dict[str, Any]:
    entries = load_replay_log(Path(args.log))

    session = _open(args)
    if args.interval_ms is not None:
        session.settings = session.settings.model_copy(
            update={"snippet_check_interval_ms": args.interval_ms}
        )

    document = InMemoryDocument()
    board = LabelBoard()
    pipeline = build_pipeline(session, document, board)
    state: Dict[str, Any] = {}

    try:
        for entry in entries:
            await apply_replay_entry(pipeline, document, entry, state)
        await pipeline.drain()
    finally:
        await session.aclose()

    return {
        "labels": {item_id: category.value for item_id, category in board.labels.items()},
        "history": [
            {"action": action, "item_id": item_id, "category": category.value if category else None}
            for action, item_id, category in board.history
        ],
        "filter": state.get("filter"),
        "cached_count": session.store.count(),
    }


def run_cache(args: argparse.Namespace) -> Dict[str, Any]:
    session = _open(args)
    store = session.store

    if args.cache_command == "clear":
        store.clear(bump_version=args.bump_version)

    epoch = store.epoch
    return {
        "count": store.count(),
        "version": epoch.version if epoch else None,
        "expected_version": store.expected_version,
        "expiry": epoch.expiry.isoformat() if epoch else None,
        "entries": {r.item_id: r.category.value for r in store.records()},
    }


def write_output(result: Dict[str, Any], output_path: Optional[Path] = None) -> None:
    """Write the JSON result to a file, or to stdout."""
    text = json.dumps(result, ensure_ascii=False, indent=2)
    if output_path is None:
        print(text)
        return

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(text + "\n")
    logger.info("output_written", path=str(output_path))


# ============================================================================
# MAIN CLI
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inboxzen",
        description="Conversation classification CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s classify "We have a great job opportunity, are you hiring?"
  %(prog)s replay events.jsonl --interval-ms 0
  %(prog)s cache stats
  %(prog)s --store-url sqlite:///other.db cache clear --bump-version
        """
    )
    parser.add_argument(
        "--store-url",
        type=str,
        default=None,
        help="SQLAlchemy URL of the key-value store (default: settings.store_url)"
    )
    parser.add_argument(
        "--memory",
        action="store_true",
        help="Use an ephemeral in-memory store"
    )
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        default=None,
        help="Write the JSON result to this file (default: stdout)"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    classify_parser = subparsers.add_parser("classify", help="Classify one snippet")
    classify_parser.add_argument("text", type=str, help="Message snippet")
    classify_parser.add_argument("--sender", type=str, default="", help="Participant names")
    classify_parser.add_argument("--subject", type=str, default="", help="Conversation subject")
    classify_parser.add_argument(
        "--item-id",
        type=str,
        default=None,
        help="Write the result to the cache under this conversation id"
    )

    replay_parser = subparsers.add_parser("replay", help="Replay a JSONL event log")
    replay_parser.add_argument("log", type=str, help="Path to the JSONL log")
    replay_parser.add_argument(
        "--interval-ms",
        type=int,
        default=None,
        help="Override the snippet poll interval (0 for instant polling)"
    )

    cache_parser = subparsers.add_parser("cache", help="Inspect or clear the category cache")
    cache_parser.add_argument("cache_command", choices=["stats", "clear"])
    cache_parser.add_argument(
        "--bump-version",
        action="store_true",
        help="Increment the cache version when clearing"
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(log_level="DEBUG" if args.verbose else "WARNING", log_json=False, stream=sys.stderr)

    try:
        if args.command == "classify":
            result = asyncio.run(run_classify(args))
        elif args.command == "replay":
            result = asyncio.run(run_replay(args))
        else:
            result = run_cache(args)
    except (OSError, ReplayError) as e:
        logger.error("cli_failed", command=args.command, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1

    write_output(result, Path(args.output) if args.output else None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
