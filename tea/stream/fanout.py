from __future__ import annotations

import logging
from typing import BinaryIO, Iterable

from .trigger import Trigger

log = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1 << 16


def copy_stream(
    source: BinaryIO,
    sink: BinaryIO,
    triggers: Iterable[Trigger] = (),
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """Copy *source* to *sink*, feeding every chunk to each trigger.

    Triggers are closed once the source is exhausted or either side fails,
    and all of them have drained before this returns.  Returns the number of
    bytes written to *sink*.
    """
    triggers = list(triggers)
    # read1 returns whatever is available instead of waiting for a full chunk.
    read = getattr(source, "read1", source.read)
    copied = 0
    try:
        while True:
            try:
                chunk = read(chunk_size)
            except OSError:
                log.error("Reading input failed", exc_info=True)
                raise
            if not chunk:
                break
            try:
                sink.write(chunk)
                sink.flush()
            except OSError:
                log.error("Writing output failed", exc_info=True)
                raise
            copied += len(chunk)
            for trigger in triggers:
                trigger.write(chunk)
    finally:
        close_all(triggers)
    return copied


def close_all(triggers: Iterable[Trigger]) -> None:
    """Close every trigger, then re-raise the first failure, if any."""
    failure: BaseException | None = None
    for trigger in triggers:
        try:
            trigger.close()
        except Exception as exc:
            if failure is None:
                failure = exc
    if failure is not None:
        raise failure
