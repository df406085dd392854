from __future__ import annotations

import argparse
import logging
import os
import sys
import threading
from typing import List, Optional, TextIO

from .config import ConfigManager, EngineConfig
from .core.resolver import ThreadingScheduler
from .engine import VaudioEngine
from .errors import ContentLoadError
from .input import InputProcessor, QueuedInput
from .logging_config import configure_logging
from .renderers import COMBINATION_HINTS, ConsoleRenderer

logger = logging.getLogger(__name__)

# Letters that force a combination instead of going through the keyboard adapter
FORCED_COMBINATIONS = {letter: key for key, letter in COMBINATION_HINTS.items()}

HELP_TEXT = """\
VAudio - four-button interactive fiction engine

Usage:
  vaudio start [base_path] [--config PATH] [--window-ms N] [--verbose]
               [--log-dir DIR] [--json-logs]
  vaudio help

Keys (type them and press Enter):
  1 2 3 4        select option 1-4 (s and d also send 3 and 4)
  q              1+2  program/game menu
  w              1+4  extra frame
  e              3+2  return
  r              3+4  confirm
  Ctrl+D         quit
"""


def _load_config(args: argparse.Namespace) -> EngineConfig:
    config: Optional[EngineConfig] = None
    if args.config:
        if os.path.isfile(args.config):
            config = EngineConfig.load(args.config)
        else:
            # A bare name is looked up as a preset or a saved config
            config = ConfigManager().get(args.config)
        if config is None:
            logger.warning(f"Config {args.config!r} not found, using defaults")
    config = config or EngineConfig()

    if args.base_path:
        config.content_root = args.base_path
    if args.window_ms is not None:
        config.combination_window_ms = args.window_ms
    if args.verbose:
        config.log_level = "DEBUG"
    return config


def feed_line(processor: InputProcessor, line: str) -> int:
    """
    Feed one line of terminal input to the processor.

    Returns:
        Number of characters that produced input
    """
    fed = 0
    for char in line:
        if char in ("\n", "\r"):
            continue
        forced = FORCED_COMBINATIONS.get(char.lower())
        if forced is not None:
            processor.force(forced, source="keyboard")
            fed += 1
        elif processor.keyboard(char) is not None:
            fed += 1
    return fed


def _read_stdin(sink: QueuedInput, engine: VaudioEngine, stream: TextIO) -> None:
    for line in stream:
        if sink.queue.closed:
            return
        feed_line(sink.processor, line)
    logger.debug("stdin closed")
    engine.stop()


def cmd_start(args: argparse.Namespace) -> int:
    config = _load_config(args)
    configure_logging(
        level=config.log_level,
        log_dir=args.log_dir,
        json_console=args.json_logs,
    )

    processor = InputProcessor(config, ThreadingScheduler())
    sink = QueuedInput(processor)
    engine = VaudioEngine(config, renderer=ConsoleRenderer(), input_sink=sink)

    try:
        engine.initialize()
    except ContentLoadError as e:
        print(f"Failed to start: {e}", file=sys.stderr)
        processor.close()
        return 1

    reader = threading.Thread(
        target=_read_stdin,
        args=(sink, engine, sys.stdin),
        name="vaudio-stdin",
        daemon=True,
    )
    reader.start()

    try:
        engine.run()
    except KeyboardInterrupt:
        print("\n[Goodbye]")
    finally:
        engine.close()
        processor.close()
    return 0


def cmd_help(args: argparse.Namespace) -> int:
    print(HELP_TEXT)
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="vaudio",
        description="VAudio - four-button interactive fiction engine",
    )
    sub = ap.add_subparsers(dest="command")

    start = sub.add_parser("start", help="Run the engine on a content directory")
    start.add_argument("base_path", nargs="?", default=None, help="Content root (default: config or .)")
    start.add_argument("--config", default=None, help="Config file (JSON/YAML) or preset name")
    start.add_argument("--window-ms", type=int, default=None, help="Combination window in milliseconds")
    start.add_argument("--verbose", action="store_true", help="Enable debug logging")
    start.add_argument("--log-dir", default=None, help="Directory for rotating log files")
    start.add_argument("--json-logs", action="store_true", help="Emit JSON logs on stderr")
    start.set_defaults(func=cmd_start)

    help_cmd = sub.add_parser("help", help="Show usage and key bindings")
    help_cmd.set_defaults(func=cmd_help)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    func = getattr(args, "func", None)
    if func is None:
        return cmd_help(args)
    return func(args)


if __name__ == "__main__":
    sys.exit(main())
