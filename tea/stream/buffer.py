from __future__ import annotations

from .pattern import Match, Pattern

DEFAULT_BUFFER_LIMIT = 1 << 16


class TriggerBuffer:
    """Bytes seen by one trigger that have not been matched or discarded yet.

    Data is only ever appended at the tail and removed from the head.  The
    buffer is not thread-safe; its owning trigger serializes access.
    """

    def __init__(self, limit: int = DEFAULT_BUFFER_LIMIT) -> None:
        if limit <= 0:
            raise ValueError(f"buffer limit must be positive, got {limit}")
        self._data = bytearray()
        self.limit = limit
        self.total_bytes_received: int = 0
        self.total_bytes_discarded: int = 0
        # Set after an overlong line was dropped before its terminator arrived.
        self._skipping_line = False

    def __len__(self) -> int:
        return len(self._data)

    def append(self, data: bytes) -> None:
        self.total_bytes_received += len(data)
        self._data += data

    def getvalue(self) -> bytes:
        return bytes(self._data)

    def consume(self, n: int) -> None:
        del self._data[:n]

    def discard(self, n: int) -> None:
        del self._data[:n]
        self.total_bytes_discarded += n

    def trim(self) -> int:
        """Drop the oldest bytes in excess of the limit; return how many."""
        excess = len(self._data) - self.limit
        if excess <= 0:
            return 0
        self.discard(excess)
        return excess

    def find_match(self, pattern: Pattern, allow_partial: bool = False) -> Match | None:
        if not pattern.spans_lines and self._skipping_line:
            if not self._skip_rest_of_line():
                return None
        match, consumed = pattern.find(self._data, allow_partial)
        if consumed:
            self.consume(consumed)
        if match is not None:
            return match
        if pattern.spans_lines:
            self.trim()
        elif len(self._data) > self.limit:
            # What is left is one unterminated line.  Its head is too old to
            # keep, so drop it whole and ignore the rest of it when it arrives.
            self.discard(len(self._data))
            self._skipping_line = not allow_partial
        return None

    def _skip_rest_of_line(self) -> bool:
        nl = self._data.find(b"\n")
        if nl < 0:
            self.discard(len(self._data))
            return False
        self.discard(nl + 1)
        self._skipping_line = False
        return True
