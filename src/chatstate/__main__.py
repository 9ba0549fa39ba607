"""Command-line inspector for persisted chat sessions.

Usage:
    python -m chatstate show <session-id> [--input TEXT]
    python -m chatstate sessions
    python -m chatstate search <query>
"""

from __future__ import annotations

import argparse
import dataclasses
import sys
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.table import Table

from chatstate import __version__
from chatstate.config import load_config
from chatstate.config.schema import LoggingConfig
from chatstate.controller import ChatController, create_controller
from chatstate.logging import setup_logging
from chatstate.session.storage import YamlSessionStorage

console = Console()


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatstate",
        description="Inspect chat sessions and their token accounting",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=None,
        help="Increase verbosity (can be repeated)",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        help="Directory holding persisted sessions (default from config)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command")

    show_parser = subparsers.add_parser("show", help="Show stored and derived fields of a session")
    show_parser.add_argument("session_id", help="Session identifier")
    show_parser.add_argument("--input", default="", help="Pretend this text is in the input box")

    subparsers.add_parser("sessions", help="List persisted sessions, most recent first")

    search_parser = subparsers.add_parser("search", help="Fuzzy-search persisted sessions")
    search_parser.add_argument("query", help="Search text")
    search_parser.add_argument("--limit", type=int, default=10, help="Maximum results")

    return parser


def _show(controller: ChatController, session_id: str, input_text: str) -> None:
    controller.load_session(session_id)
    if input_text:
        controller.set_input_content(input_text)
    snapshot = controller.store.snapshot()

    table = Table(title=f"Session {snapshot.session_id}")
    table.add_column("Field")
    table.add_column("Value", justify="right")
    table.add_row("model family", snapshot.session_settings.model)
    table.add_row("continuous dialogue", str(snapshot.session_settings.continuous_dialogue))
    table.add_row("messages", str(len(snapshot.message_list)))
    table.add_row("context messages", str(len(snapshot.valid_context)))
    table.add_row("context tokens", str(snapshot.context_token))
    table.add_row("input tokens", str(snapshot.input_content_token))
    table.add_row("current model", snapshot.current_model)
    table.add_row("remaining tokens", str(snapshot.remaining_token))
    table.add_row("context cost", f"${snapshot.context_token_cost:.5f}")
    table.add_row("input cost", f"${snapshot.input_content_token_cost:.5f}")
    console.print(table)


def _sessions(controller: ChatController) -> None:
    sessions = sorted(
        controller.storage.list_all_persisted_sessions(),
        key=lambda s: s.last_visit,
        reverse=True,
    )
    table = Table(title="Sessions")
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Messages", justify="right")
    table.add_column("Last visit")
    for s in sessions:
        visited = datetime.fromtimestamp(s.last_visit / 1000).strftime("%Y-%m-%d %H:%M")
        table.add_row(s.id, s.title, str(len(s.messages or [])), visited)
    console.print(table)


def _search(controller: ChatController, query: str, limit: int) -> None:
    controller.rebuilder.rebuild()
    results = controller.search_sessions(query, limit)
    if not results:
        console.print("[dim]No matching sessions[/dim]")
        return
    for option in results:
        console.print(f"[bold]{option.extra['id']}[/bold]  {option.title}")


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.command is None:
        parser.print_help()
        return 1

    config = load_config()
    if parsed.verbose is not None:
        config = dataclasses.replace(
            config, logging=LoggingConfig(verbose=parsed.verbose, file=config.logging.file)
        )
    setup_logging(config.logging)

    data_dir = parsed.data_dir or config.data_dir
    controller = create_controller(config, YamlSessionStorage(data_dir))

    if parsed.command == "show":
        _show(controller, parsed.session_id, parsed.input)
    elif parsed.command == "sessions":
        _sessions(controller)
    elif parsed.command == "search":
        _search(controller, parsed.query, parsed.limit)
    return 0


def main() -> None:
    sys.exit(run_cli(sys.argv[1:]))


if __name__ == "__main__":
    main()
