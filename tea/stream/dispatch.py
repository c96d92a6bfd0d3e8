from __future__ import annotations

import logging
import re
import subprocess
import sys
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import IO, Any, Protocol

from tea.utils.trace import Tracer

from .pattern import Match

log = logging.getLogger(__name__)

# $$, ${name} or $name; a name is the longest run of word characters.
_PLACEHOLDER = re.compile(r"\$(?:(\$)|\{(\w+)\}|(\w+))", re.ASCII)


class ActionError(RuntimeError):
    def __init__(self, command: str, message: str, returncode: int | None = None) -> None:
        super().__init__(f"executing {command!r}: {message}")
        self.command = command
        self.returncode = returncode


@dataclass(frozen=True, slots=True)
class ActionTemplate:
    command: str
    args: tuple[str, ...] = ()
    pipe: bool = False

    def expand(self, match: Match) -> list[str]:
        return [expand(arg, match) for arg in self.args]


def expand(template: str, match: Match) -> str:
    """Substitute submatch references in *template*.

    ``$0`` is the whole match, ``$1``/``${1}`` a numbered group and
    ``$name``/``${name}`` a named group.  Groups that are unknown or did not
    participate become empty strings; ``$$`` is a literal dollar sign.
    """

    def _replace(m: re.Match[str]) -> str:
        if m.group(1):
            return "$"
        name = m.group(2) or m.group(3)
        ref: int | str = int(name) if name.isdigit() else name
        value = match.group(ref)
        if value is None:
            return ""
        # surrogateescape lets subprocess hand the original bytes to the child.
        return value.decode("utf-8", "surrogateescape")

    return _PLACEHOLDER.sub(_replace, template)


class ActionRunner(Protocol):
    def run(self, command: str, args: list[str], stdin: bytes | None = None) -> None: ...


class SubprocessRunner:
    """Run actions as child processes.

    Output goes to standard error unless *output* says otherwise, so that the
    primary output stays a faithful copy of the input.
    """

    def __init__(self, output: IO[Any] | int | None = None, timeout: float | None = None) -> None:
        self.output = output
        self.timeout = timeout or None

    def run(self, command: str, args: list[str], stdin: bytes | None = None) -> None:
        output = self.output if self.output is not None else sys.stderr
        try:
            proc = subprocess.run(  # noqa: S603
                [command, *args],
                input=stdin,
                stdin=None if stdin is not None else subprocess.DEVNULL,
                stdout=output,
                stderr=output,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise ActionError(command, f"timed out after {exc.timeout}s") from exc
        except ValueError as exc:
            # Arguments the OS cannot take, e.g. a NUL byte from the stream.
            raise ActionError(command, str(exc)) from exc
        if proc.returncode != 0:
            raise ActionError(
                command, f"exit status {proc.returncode}", returncode=proc.returncode
            )


class Dispatcher:
    """Serializes the actions of one trigger.

    The single-worker executor is the trigger's dispatch slot: at most one
    action runs at a time, queued actions start in submission order and none
    is dropped.
    """

    def __init__(
        self,
        template: ActionTemplate,
        runner: ActionRunner,
        name: str = "trigger",
        tracer: Tracer | None = None,
    ) -> None:
        self.template = template
        self.name = name
        self._runner = runner
        self._tracer = tracer or Tracer(enabled=False)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"tea-{name}")
        self._lock = threading.Lock()
        self._pending: set[Future[None]] = set()
        self._fatal: BaseException | None = None
        self.dispatched: int = 0
        self.failed: int = 0

    @property
    def busy(self) -> bool:
        with self._lock:
            return bool(self._pending)

    def dispatch(self, match: Match) -> Future[None]:
        args = self.template.expand(match)
        stdin = match.text if self.template.pipe else None
        self._tracer.match(self.name, match.text)
        future = self._executor.submit(self._run, args, stdin)
        with self._lock:
            self.dispatched += 1
            self._pending.add(future)
        future.add_done_callback(self._finished)
        return future

    def _run(self, args: list[str], stdin: bytes | None) -> None:
        self._tracer.invoke(self.template.command, args, piped=stdin is not None)
        try:
            self._runner.run(self.template.command, args, stdin)
        except (ActionError, OSError, subprocess.SubprocessError) as exc:
            with self._lock:
                self.failed += 1
            log.warning("%s: %s", self.name, exc)

    def _finished(self, future: Future[None]) -> None:
        exc = future.exception()
        with self._lock:
            self._pending.discard(future)
            if exc is not None and self._fatal is None:
                self._fatal = exc
        if exc is not None:
            log.error("%s: action crashed", self.name, exc_info=exc)

    def close(self) -> None:
        """Wait for every submitted action to finish."""
        self._executor.shutdown(wait=True)
        if self._fatal is not None:
            raise self._fatal
