from __future__ import annotations

import threading

from rich.console import Console
from rich.text import Text


class Tracer:
    """Verbose trace of matches and action invocations on standard error."""

    def __init__(self, enabled: bool = True, console: Console | None = None) -> None:
        self.enabled = enabled
        self._console = console or Console(stderr=True, highlight=False)
        # Actions of different triggers trace from different threads.
        self._lock = threading.Lock()

    def match(self, name: str, text: bytes) -> None:
        if not self.enabled:
            return
        line = Text.assemble(
            (f"[{name}] ", "bold cyan"),
            ("match ", "green"),
            repr(text.decode("utf-8", "replace")),
        )
        self._print(line)

    def invoke(self, command: str, args: list[str], piped: bool = False) -> None:
        if not self.enabled:
            return
        line = Text.assemble(
            ("run ", "yellow"),
            (command, "bold"),
            " ",
            " ".join(repr(a) for a in args),
        )
        if piped:
            line.append(" <stdin", style="dim")
        self._print(line)

    def _print(self, text: Text) -> None:
        with self._lock:
            self._console.print(text, soft_wrap=True)
