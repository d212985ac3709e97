"""
Command line tools for dialogue data.

Usage:
    python -m branchtalk validate dialog --entry welcome
    python -m branchtalk compile scripts/intro.dialog -o dialog/intro.json
    python -m branchtalk import-csv sheets/prologue.csv --prefix prologue_
    python -m branchtalk play dialog welcome

Exit codes:
    0 - Success
    1 - Validation errors or failed command
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, Optional, Sequence

from branchtalk.core.config import EngineConfig
from branchtalk.core.errors import DialogueError, InvalidChoiceIndexError
from branchtalk.core.events import DialogueEvent, Event
from branchtalk.core.scheduling import TickScheduler
from branchtalk.dialogue.engine import DialogueEngine, DialoguePhase
from branchtalk.dialogue.script import ScriptSyntaxError, compile_script
from branchtalk.resources.csv_import import convert_csv
from branchtalk.resources.graph_store import GraphStore

logger = logging.getLogger("branchtalk")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="branchtalk", description="Dialogue data tools")
    parser.add_argument("--config", type=Path, help="JSON engine config file")
    parser.add_argument("--log-level", help="Override the configured log level")
    sub = parser.add_subparsers(dest="command", required=True)

    validate = sub.add_parser("validate", help="Lint a dialogue directory")
    validate.add_argument("path", type=Path)
    validate.add_argument("--entry", action="append", default=None, help="Entry node id (repeatable)")

    compile_ = sub.add_parser("compile", help="Compile a dialogue script to JSON")
    compile_.add_argument("script", type=Path)
    compile_.add_argument("-o", "--output", type=Path)

    import_csv = sub.add_parser("import-csv", help="Convert a dialogue CSV to JSON")
    import_csv.add_argument("csv", type=Path)
    import_csv.add_argument("-o", "--output", type=Path)
    import_csv.add_argument("--prefix", default="dialogue_")

    play = sub.add_parser("play", help="Play a conversation in the terminal")
    play.add_argument("path", type=Path)
    play.add_argument("start")

    return parser


def cmd_validate(args: argparse.Namespace, config: EngineConfig) -> int:
    graph = GraphStore(validate_schema=config.validate_schema)
    graph.load_directory(args.path)

    issues = graph.check_graph(args.entry)
    for issue in issues:
        print(issue)

    errors = sum(1 for issue in issues if issue.is_error)
    print(f"{len(graph)} nodes, {errors} errors, {len(issues) - errors} warnings")
    return 1 if errors else 0


def cmd_compile(args: argparse.Namespace, config: EngineConfig) -> int:
    output = compile_script(args.script, args.output)
    print(f"Compiled {args.script} -> {output}")
    return 0


def cmd_import_csv(args: argparse.Namespace, config: EngineConfig) -> int:
    output = convert_csv(args.csv, args.output, id_prefix=args.prefix)
    print(f"Imported {args.csv} -> {output}")
    return 0


def cmd_play(args: argparse.Namespace, config: EngineConfig) -> int:
    config.dialog_path = args.path
    engine = DialogueEngine.from_config(config)
    play(engine, args.start)
    return 0


def play(
    engine: DialogueEngine,
    start: str,
    read: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
) -> None:
    """
    Run a conversation against text input/output.

    Auto-continue lines are stepped by advancing the engine's TickScheduler
    by the line's delay instead of sleeping.
    """
    def on_line(event: Event) -> None:
        line = event["line"]
        write(f"{line.speaker}: {line.text}")

    def on_choices(event: Event) -> None:
        for number, choice in enumerate(event["choices"], start=1):
            write(f"  {number}. {choice.text}")

    def on_end(event: Event) -> None:
        tag = event.get("on_complete_event")
        write(f"[end{': ' + tag if tag else ''}]")

    subscriptions = [
        engine.subscribe(DialogueEvent.LINE_DISPLAYED, on_line),
        engine.subscribe(DialogueEvent.CHOICES_PRESENTED, on_choices),
        engine.subscribe(DialogueEvent.DIALOGUE_ENDED, on_end),
    ]

    try:
        engine.start(start)
        while engine.is_active:
            try:
                if engine.phase == DialoguePhase.CHOICES_PRESENTED:
                    raw = read("> ")
                    try:
                        engine.select_choice(int(raw) - 1)
                    except (ValueError, InvalidChoiceIndexError):
                        write(f"Pick a number from 1 to {len(engine.presented_choices)}")
                    continue

                line = engine.current_line
                if (
                    line is not None
                    and line.auto_continue
                    and isinstance(engine.scheduler, TickScheduler)
                    and engine.scheduler.update(line.auto_continue_delay_seconds)
                ):
                    continue

                read("")
                engine.advance()
            except EOFError:
                engine.end()
    finally:
        for subscription in subscriptions:
            subscription.cancel()


COMMANDS = {
    "validate": cmd_validate,
    "compile": cmd_compile,
    "import-csv": cmd_import_csv,
    "play": cmd_play,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    config = EngineConfig.from_file(args.config) if args.config else EngineConfig()
    if args.log_level:
        config.log_level = args.log_level.upper()
    logging.basicConfig(level=config.log_level, format="%(levelname)s %(name)s: %(message)s")

    try:
        return COMMANDS[args.command](args, config)
    except (DialogueError, ScriptSyntaxError) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
