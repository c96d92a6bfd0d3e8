from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass

from tea.utils.trace import Tracer

from .buffer import DEFAULT_BUFFER_LIMIT, TriggerBuffer
from .dispatch import ActionRunner, ActionTemplate, Dispatcher, SubprocessRunner
from .pattern import Pattern

log = logging.getLogger(__name__)


class TriggerConfigError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class TriggerSpec:
    pattern: str
    action: ActionTemplate

    @classmethod
    def from_dict(cls, raw: dict) -> TriggerSpec:
        """Build a spec from a ``[[triggers]]`` config table."""
        if not isinstance(raw.get("pattern"), str):
            raise TriggerConfigError(f"trigger is missing a pattern: {raw!r}")
        args = raw.get("args", [])
        if not isinstance(args, list):
            raise TriggerConfigError(f"trigger args must be a list: {raw!r}")
        return cls(
            pattern=raw["pattern"],
            action=ActionTemplate(
                command=str(raw.get("command", "")),
                args=tuple(str(a) for a in args),
                pipe=bool(raw.get("pipe", False)),
            ),
        )


class Trigger:
    """One pattern watching the stream and the action it fires.

    ``write`` is called with every chunk of the stream; each match found is
    handed to the dispatcher without waiting for the action to run.
    """

    def __init__(
        self,
        spec: TriggerSpec,
        runner: ActionRunner | None = None,
        buffer_limit: int = DEFAULT_BUFFER_LIMIT,
        name: str = "",
        tracer: Tracer | None = None,
    ) -> None:
        if not spec.action.command:
            raise TriggerConfigError(f"missing command for pattern {spec.pattern!r}")
        try:
            self.pattern = Pattern(spec.pattern)
        except re.error as exc:
            raise TriggerConfigError(f"parsing pattern {spec.pattern!r}: {exc}") from exc

        self.spec = spec
        self.name = name or spec.pattern
        self._buffer = TriggerBuffer(buffer_limit)
        self._dispatcher = Dispatcher(
            spec.action, runner or SubprocessRunner(), name=self.name, tracer=tracer
        )
        self._lock = threading.Lock()
        self._closed = False
        log.debug(
            "Trigger %s: %r (%s mode)",
            self.name, spec.pattern,
            "multi-line" if self.pattern.spans_lines else "line",
        )
        if self.pattern.may_span_lines and not self.pattern.spans_lines:
            log.debug(
                "Trigger %s: %r uses \\s, \\D, \\W or a negated class but is "
                "matched one line at a time; write \\n or (?s) to match across lines",
                self.name, spec.pattern,
            )

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def buffered(self) -> int:
        with self._lock:
            return len(self._buffer)

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    def write(self, data: bytes) -> int:
        with self._lock:
            if self._closed:
                raise ValueError("write to closed trigger")
            self._buffer.append(data)
            while (match := self._buffer.find_match(self.pattern)) is not None:
                self._dispatcher.dispatch(match)
        return len(data)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            match = self._buffer.find_match(self.pattern, allow_partial=True)
            if match is not None:
                self._dispatcher.dispatch(match)
        self._dispatcher.close()
