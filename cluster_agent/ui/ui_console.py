"""
Console user interface for the operator's interactive shell.
"""
import os
import select
import sys
import threading
from typing import Optional, TextIO


COLORS = {
    'RESET': '\033[0m',
    'RED': '\033[1;31m',
    'GREEN': '\033[1;32m',
    'CYAN': '\033[1;36m',
    'BOLD': '\033[1m'
}

PROMPT = "[shell]-> "
INPUT_POLL_INTERVAL_SEC = 0.2


def _supports_color(stream: TextIO) -> bool:
    """
    Colors are used only on a terminal and only when NO_COLOR is not set.
    """
    if os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    try:
        return bool(isatty and isatty())
    except ValueError:
        return False


def colored_text(text: str, color: str, stream: Optional[TextIO] = None) -> str:
    """
    Wraps text with ANSI color codes if supported.

    :param text: Text to colorize
    :type text: str
    :param color: Color name from COLORS dict
    :type color: str
    :param stream: Stream the text will be written to (defaults to stdout)
    :type stream: Optional[TextIO]
    :return: Colorized text if supported, original text otherwise
    :rtype: str
    """
    if color not in COLORS or not _supports_color(stream or sys.stdout):
        return text
    return COLORS[color] + text + COLORS['RESET']


def display_error(message: str, error_type: str = "ERROR") -> None:
    error_prefix = colored_text(f"[{error_type}]", "RED", sys.stderr)
    print(f"{error_prefix} {message}", file=sys.stderr, flush=True)


def display_info(message: str) -> None:
    print(message, flush=True)


def display_success(message: str) -> None:
    print(colored_text(message, "GREEN"), flush=True)


def display_output(output: str) -> None:
    """
    Prints a command result received from the coordinator.
    """
    print("\n" + colored_text(output, "GREEN"), flush=True)


class OperatorConsole:
    """
    Reads operator command lines from a text stream.

    The stream is polled so a reader blocked waiting for the operator notices
    a stop request within one poll interval.
    """

    def __init__(self, stream: Optional[TextIO] = None, prompt: str = PROMPT,
                 poll_interval: float = INPUT_POLL_INTERVAL_SEC):
        self.stream = stream or sys.stdin
        self.prompt = prompt
        self.poll_interval = poll_interval
        self.encoding = getattr(self.stream, "encoding", None) or "utf-8"
        self._pending = b""
        self._eof = False

    def show_prompt(self):
        print("\n" + colored_text(self.prompt, "CYAN"), end="", flush=True)

    def _fileno(self) -> Optional[int]:
        try:
            return self.stream.fileno()
        except (AttributeError, OSError, ValueError):
            return None

    def _read_line_from_fd(self, fileno: int, stop_event: threading.Event) -> Optional[bytes]:
        # Reads the descriptor directly: a buffered text reader could hold
        # complete lines that select() would never report.
        while b"\n" not in self._pending and not self._eof:
            if stop_event.is_set():
                return None
            readable, _, _ = select.select([fileno], [], [], self.poll_interval)
            if not readable:
                continue
            chunk = os.read(fileno, 4096)
            if chunk:
                self._pending += chunk
            else:
                self._eof = True

        if stop_event.is_set():
            return None
        if b"\n" in self._pending:
            line, self._pending = self._pending.split(b"\n", 1)
            return line
        if not self._pending:
            raise EOFError("Operator input closed")
        line, self._pending = self._pending, b""
        return line

    def read_command(self, stop_event: threading.Event) -> Optional[str]:
        """
        Prompts and reads one line.

        :param stop_event: Set when the agent is shutting down
        :type stop_event: threading.Event
        :return: The line without its trailing newline, or None if stopped
        :rtype: Optional[str]
        :raises EOFError: When the input stream is exhausted
        """
        self.show_prompt()
        fileno = self._fileno()
        if fileno is None:
            if stop_event.is_set():
                return None
            line = self.stream.readline()
            if line == "":
                raise EOFError("Operator input closed")
            return line.rstrip("\n")

        raw = self._read_line_from_fd(fileno, stop_event)
        if raw is None:
            return None
        return raw.decode(self.encoding, errors='replace').rstrip("\r")
