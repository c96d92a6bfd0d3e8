from __future__ import annotations

DEFAULT_CONFIG: dict = {
    "general": {
        "log_file": "",
        "log_level": "INFO",
        "verbose": False,
    },
    "stream": {
        # Match buffer size limit per trigger (bytes).
        "buffer_limit": 1 << 16,
        "chunk_size": 1 << 16,
    },
    "actions": {
        # 0 disables the timeout.
        "timeout_seconds": 0,
        # Where action output goes: "stderr" or "null".
        "output": "stderr",
    },
    # [[triggers]] tables: pattern, command, args, pipe
    "triggers": [],
}
