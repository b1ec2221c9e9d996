# src/todo_companion/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.chat import send_message
from ..core.errors import TodoError
from ..core.state import AppState
from ..llm.client import friendly_error_message

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    if sys.stdout.isatty():
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(line + "\n")
        sys.stdout.flush()
    else:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


async def run_console_loop(state: AppState) -> None:
    """
    Interactive REPL.

    input() runs in a worker thread so generation calls (chat, /generate)
    share one event loop with the rest of the session.
    """
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Add tasks with /add, chat with the assistant by typing. /help for commands, /exit to quit.\n")

    app_name = str(getattr(state.settings, "app_name", "todo"))

    while True:
        try:
            user_input = (await asyncio.to_thread(input, ">>> You: ")).strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> You: {user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        # Commands (/help, /add, ...)
        try:
            cmd_response = await command_registry.handle(state, user_input, emit=_print_ts)
        except Exception:
            logger.exception("Command handler crashed.")
            cmd_response = "Internal error while handling a command."

        if cmd_response is not None:
            _print_ts(cmd_response)
            continue

        # Normal chat: one request, one reply.
        try:
            reply = await send_message(state, user_input)
        except TodoError as e:
            msg = friendly_error_message(e)
            logger.info("Chat error: %s", msg)
            _print_ts(f"[LLM] {msg}")
            continue
        except Exception:
            logger.exception("Console chat handler crashed.")
            _print_ts("Internal error while generating a reply.")
            continue

        if reply:
            _print_ts(f"<<< {app_name}: {reply}\n")

    logger.info("Console connector finished.")
