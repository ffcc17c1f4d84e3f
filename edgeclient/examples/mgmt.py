#!/usr/bin/env python3
"""
Management API REPL.

Commands are written as calls, for example
``readResource("thermometer-0", "/3303/0/5700")``; a shell-like form
``readResource thermometer-0 /3303/0/5700`` is accepted too.
"""

import ast
import asyncio
import json
import logging
import shlex
import sys
from typing import Any, Dict, List, Optional, Sequence, Tuple

from prompt_toolkit import HTML, PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.history import FileHistory
from prompt_toolkit.patch_stdout import patch_stdout

from ..errors import EdgeError
from ..log import configure_logging
from ..mgmt import ManagementClient
from .common import best_effort_disconnect, build_parser, options_from_args

logger = logging.getLogger(__name__)

TAG = "EdgeMgmtExample"
HISTORY_FILE = ".repl_history"

COMMANDS = ("connect", "devices", "readResource", "writeResource", "help", "exit")

# REPL argument names -> Python parameter names
KEYWORDS = {
    "apiPath": "api_path",
    "socketPath": "socket_path",
    "endpointName": "endpoint_name",
    "resourceURI": "uri",
    "base64Value": "base64_value",
}

HELP_TEXT = """Management API commands: connect, devices, readResource, writeResource, exit and help.
Example usage:
  Function `connect(apiPath="/1/mgmt", socketPath="/tmp/edge.sock")`.
  Function `devices()`.
  Function `readResource(endpointName, resourceURI)`. Example: `readResource("thermometer-0", "/3303/0/5700")`.
  Function `writeResource(endpointName, resourceURI, base64Value)`. Example: `writeResource("thermostat-0", "/3308/0/5900", "QEcHSP//kFU=")`.
  Function `exit()`
  Function `help()`"""


class CommandError(ValueError):
    """The REPL input could not be parsed as a command."""


def parse_command(line: str) -> Tuple[str, List[Any], Dict[str, Any]]:
    """
    Parse a REPL line into (command, args, kwargs).

    Argument values must be Python literals in the call form; the shell-like
    form passes every argument as a string.
    """
    line = line.strip()
    try:
        node = ast.parse(line, mode="eval").body
    except SyntaxError:
        node = None

    if isinstance(node, ast.Name):
        return node.id, [], {}
    if not isinstance(node, ast.Call) or not isinstance(node.func, ast.Name):
        # Shell-like lines such as ``connect /1/mgmt`` may still parse as Python
        return _split_words(line)

    try:
        args = [ast.literal_eval(arg) for arg in node.args]
        kwargs = {KEYWORDS.get(kw.arg, kw.arg): ast.literal_eval(kw.value) for kw in node.keywords}
    except ValueError as e:
        raise CommandError(f"Arguments must be literals: {e}") from e
    return node.func.id, args, kwargs


def _split_words(line: str) -> Tuple[str, List[Any], Dict[str, Any]]:
    try:
        words = shlex.split(line)
    except ValueError as e:
        raise CommandError(f"Cannot parse '{line}': {e}") from e
    if not words:
        raise CommandError("Empty command")
    return words[0], words[1:], {}


class ManagementRepl:
    """Read-eval-print loop over a ManagementClient."""

    def __init__(self, edge: ManagementClient, session: Optional[PromptSession] = None):
        self.edge = edge
        self._session = session
        self._commands = {
            "connect": self.connect,
            "devices": self.devices,
            "readResource": self.read_resource,
            "writeResource": self.write_resource,
            "help": self.help,
            "exit": self.exit,
        }
        self._stopped = False

    def _prompt_session(self) -> PromptSession:
        if self._session is None:
            self._session = PromptSession(
                history=FileHistory(HISTORY_FILE),
                completer=WordCompleter(list(COMMANDS)),
            )
        return self._session

    async def connect(self, api_path: Optional[str] = None, socket_path: Optional[str] = None) -> None:
        await self.edge.connect(api_path, socket_path)
        logger.info("Connected to Edge")

    async def devices(self) -> None:
        response = await self.edge.devices()
        logger.info(f"Device list query response: {json.dumps(response, indent=2)}")

    async def read_resource(self, endpoint_name: str, uri: str) -> None:
        response = await self.edge.read_resource(endpoint_name, uri)
        logger.info(f"Read resource response: {json.dumps(response, indent=2)}")

    async def write_resource(self, endpoint_name: str, uri: str, base64_value: str) -> None:
        response = await self.edge.write_resource(endpoint_name, uri, base64_value)
        logger.info(f"Write resource response: {json.dumps(response, indent=2)}")

    async def help(self) -> None:
        print(HELP_TEXT)

    async def exit(self) -> None:
        self._stopped = True

    async def execute(self, line: str) -> bool:
        """Run one REPL line. Returns False once the REPL should stop."""
        if not line.strip():
            return not self._stopped

        try:
            name, args, kwargs = parse_command(line)
        except CommandError as e:
            logger.error(f"Error: {e}")
            return not self._stopped

        command = self._commands.get(name)
        if command is None:
            logger.error(f"Error: unknown command '{name}', try help()")
            return not self._stopped

        try:
            await command(*args, **kwargs)
        except TypeError as e:
            logger.error(f"Error: bad arguments for {name}: {e}")
        except EdgeError as e:
            logger.error(f"Error: {e}")
        return not self._stopped

    async def run(self) -> None:
        """Prompt for commands until exit(), Ctrl+C or Ctrl+D."""
        await self.help()
        session = self._prompt_session()
        self._stopped = False
        while not self._stopped:
            try:
                line = await session.prompt_async(HTML("<ansicyan>&lt;mgmt&gt;$ </ansicyan>"))
            except (EOFError, KeyboardInterrupt):
                break
            await self.execute(line)


async def serve(edge: ManagementClient, repl: ManagementRepl) -> int:
    """
    Run the REPL, then disconnect once however it ended.

    Returns 1 when interrupted while a command was running, 0 otherwise.
    """
    status = 0
    try:
        await repl.run()
    except asyncio.CancelledError:
        task = asyncio.current_task()
        if hasattr(task, "uncancel"):
            task.uncancel()
        logger.warning("Interrupted, exiting.")
        status = 1
    finally:
        logger.info("Exiting...")
        await best_effort_disconnect(edge)
    return status


async def run(args) -> int:
    edge = ManagementClient(options_from_args(args))
    repl = ManagementRepl(edge)
    with patch_stdout():
        return await serve(edge, repl)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser("Edge Core management API REPL.", stepped=False)
    args = parser.parse_args(argv)
    configure_logging(TAG, args.debug)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 1


if __name__ == "__main__":
    sys.exit(main())
