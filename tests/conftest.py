from __future__ import annotations

import threading
import time

import pytest


class RecordingRunner:
    """Action runner that records invocations instead of spawning processes."""

    def __init__(self, delay: float = 0.0, fail_on: set[str] | None = None) -> None:
        self.delay = delay
        self.fail_on = fail_on or set()
        self.calls: list[tuple[str, list[str], bytes | None]] = []
        self.running = 0
        self.max_running = 0
        self._lock = threading.Lock()

    def run(self, command: str, args: list[str], stdin: bytes | None = None) -> None:
        with self._lock:
            self.running += 1
            self.max_running = max(self.max_running, self.running)
        try:
            if self.delay:
                time.sleep(self.delay)
            with self._lock:
                self.calls.append((command, list(args), stdin))
            if command in self.fail_on:
                raise OSError(f"{command}: not found")
        finally:
            with self._lock:
                self.running -= 1


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def slow_runner() -> RecordingRunner:
    return RecordingRunner(delay=0.05)


@pytest.fixture
def failing_runner() -> RecordingRunner:
    return RecordingRunner(fail_on={"missing"})


@pytest.fixture
def make_runner():
    return RecordingRunner
