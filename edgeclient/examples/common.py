"""
Shared plumbing for the interactive example programs.

Each example walks through a fixed sequence of Edge Core calls, waiting for
the operator between steps. Any failure or Ctrl+C ends the program with one
best-effort disconnect and exit status 1.
"""

import argparse
import asyncio
import logging
import signal
from typing import Any, Awaitable, Callable, Optional

from prompt_toolkit import HTML, PromptSession

from ..rpc import DEFAULT_CALL_TIMEOUT, DEFAULT_SOCKET_PATH, EdgeClientOptions

logger = logging.getLogger(__name__)


class Operator:
    """Operator input used to gate each example step."""

    def __init__(self, session: Optional[PromptSession] = None):
        self._session = session

    async def hold_progress(self, message: str) -> None:
        """Wait until the operator presses Enter."""
        if self._session is None:
            self._session = PromptSession()
        await self._session.prompt_async(
            HTML("<ansiyellow><b>{}</b></ansiyellow> ").format(message))


class AutoOperator(Operator):
    """Operator that never waits, for unattended runs."""

    async def hold_progress(self, message: str) -> None:
        logger.info(message)


def build_parser(description: str, default_name: Optional[str] = None,
                 stepped: bool = True) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=description,
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--socket-path", default=DEFAULT_SOCKET_PATH,
                        help="Edge Core Unix domain socket")
    if default_name is not None:
        parser.add_argument("--name", default=default_name,
                            help="name to register with Edge Core")
    parser.add_argument("--timeout", type=float, default=DEFAULT_CALL_TIMEOUT,
                        help="RPC call timeout in seconds")
    if stepped:
        parser.add_argument("--yes", action="store_true",
                            help="run every step without waiting for the operator")
    parser.add_argument("--debug", action="store_true",
                        help="log every JSON-RPC frame")
    return parser


def options_from_args(args: argparse.Namespace) -> EdgeClientOptions:
    return EdgeClientOptions(
        socket_path=args.socket_path,
        call_timeout=args.timeout,
        debug=args.debug,
    )


def operator_from_args(args: argparse.Namespace) -> Operator:
    return AutoOperator() if args.yes else Operator()


async def best_effort_disconnect(program: Any) -> None:
    """Disconnect, logging rather than raising any error."""
    try:
        await program.disconnect()
    except Exception as e:
        logger.error(f"Error on closing the Edge Core connection. {e}")


async def run_interactive(program: Any,
                          steps: Callable[[], Awaitable[None]],
                          wait_forever: bool = True) -> int:
    """
    Run the example steps and return the process exit status.

    After the steps the program keeps serving inbound calls until Ctrl+C.
    Ctrl+C and failures both end in a best-effort disconnect and status 1.
    """
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    try:
        loop.add_signal_handler(signal.SIGINT, task.cancel)
        handles_sigint = True
    except (NotImplementedError, RuntimeError, ValueError):
        handles_sigint = False

    try:
        await steps()
        if wait_forever:
            logger.info("Kill the example with Ctrl+C")
            await asyncio.Event().wait()
        return 0
    except (asyncio.CancelledError, KeyboardInterrupt, EOFError):
        if hasattr(task, "uncancel"):
            task.uncancel()
        logger.warning("Interrupted, exiting.")
        await best_effort_disconnect(program)
        return 1
    except Exception as e:
        logger.error(f"Error... {e}")
        await best_effort_disconnect(program)
        return 1
    finally:
        if handles_sigint:
            loop.remove_signal_handler(signal.SIGINT)
