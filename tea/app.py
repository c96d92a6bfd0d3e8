from __future__ import annotations

import logging
import subprocess
import sys
from typing import BinaryIO

from tea.config.manager import ConfigManager
from tea.stream.dispatch import ActionRunner, SubprocessRunner
from tea.stream.fanout import close_all, copy_stream
from tea.stream.trigger import Trigger, TriggerSpec
from tea.utils.logger import setup_logging
from tea.utils.trace import Tracer

log = logging.getLogger("tea.app")

ACTION_OUTPUTS: dict[str, int | None] = {
    "stderr": None,
    "null": subprocess.DEVNULL,
}


class TeaApp:
    """Copies a stream to its output while triggers watch it.

    Settings come from the config file; keyword overrides (from the command
    line) win when they are not None.  Triggers from the config file run
    before *extra_triggers*.
    """

    def __init__(
        self,
        config_path: str | None = None,
        extra_triggers: list[TriggerSpec] | None = None,
        buffer_limit: int | None = None,
        chunk_size: int | None = None,
        timeout: float | None = None,
        log_file: str | None = None,
        verbose: bool = False,
        runner: ActionRunner | None = None,
    ) -> None:
        self._config = ConfigManager(config_path)
        self._extra_triggers = list(extra_triggers or [])
        self.buffer_limit = int(_pick(buffer_limit, self._config.get("stream.buffer_limit")))
        self.chunk_size = int(_pick(chunk_size, self._config.get("stream.chunk_size")))
        self.timeout = float(_pick(timeout, self._config.get("actions.timeout_seconds", 0)))
        self.verbose = verbose or bool(self._config.get("general.verbose", False))

        log_level = "DEBUG" if self.verbose else str(self._config.get("general.log_level", "INFO"))
        setup_logging(
            log_file=_pick(log_file, self._config.get("general.log_file", "")),
            log_level=log_level,
        )

        if runner is None:
            output_name = str(self._config.get("actions.output", "stderr"))
            if output_name not in ACTION_OUTPUTS:
                log.warning("Unknown actions.output %r, using stderr", output_name)
            runner = SubprocessRunner(
                output=ACTION_OUTPUTS.get(output_name), timeout=self.timeout
            )
        self._runner = runner
        self._tracer = Tracer(enabled=self.verbose)

    def build_triggers(self) -> list[Trigger]:
        """Construct every configured trigger.

        Raises TriggerConfigError for the first invalid one; triggers built
        before it are closed.
        """
        specs = self._config.triggers() + self._extra_triggers
        triggers: list[Trigger] = []
        try:
            for i, spec in enumerate(specs):
                triggers.append(
                    Trigger(
                        spec,
                        runner=self._runner,
                        buffer_limit=self.buffer_limit,
                        name=f"trigger[{i}]",
                        tracer=self._tracer,
                    )
                )
        except Exception:
            close_all(triggers)
            raise
        return triggers

    def run(self, source: BinaryIO | None = None, sink: BinaryIO | None = None) -> int:
        triggers = self.build_triggers()
        source = source if source is not None else sys.stdin.buffer
        sink = sink if sink is not None else sys.stdout.buffer
        log.debug("Copying with %d trigger(s)", len(triggers))
        try:
            copy_stream(source, sink, triggers, chunk_size=self.chunk_size)
        except OSError:
            # Already logged by copy_stream.
            return 1
        return 0


def _pick(override, configured):
    return configured if override is None else override
