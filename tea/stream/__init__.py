from __future__ import annotations

from .pattern import Match, Pattern
from .buffer import DEFAULT_BUFFER_LIMIT, TriggerBuffer
from .dispatch import ActionError, ActionRunner, ActionTemplate, Dispatcher, SubprocessRunner
from .trigger import Trigger, TriggerConfigError, TriggerSpec
from .fanout import DEFAULT_CHUNK_SIZE, close_all, copy_stream

__all__ = [
    "DEFAULT_BUFFER_LIMIT",
    "DEFAULT_CHUNK_SIZE",
    "ActionError",
    "ActionRunner",
    "ActionTemplate",
    "Dispatcher",
    "Match",
    "Pattern",
    "SubprocessRunner",
    "Trigger",
    "TriggerBuffer",
    "TriggerConfigError",
    "TriggerSpec",
    "close_all",
    "copy_stream",
]
