from __future__ import annotations

import argparse
import sys
import tomllib

from tea.stream.dispatch import ActionTemplate
from tea.stream.trigger import TriggerConfigError, TriggerSpec

GROUP_SEPARATOR = ";"
PIPE_MARKER = "|"

DESCRIPTION = """\
Copy standard input to standard output. If a regexp and command are
given, each match of the regexp in the input triggers execution of the
given command and arguments. $0 in an argument is replaced by the whole
match, $1 or ${name} by a capture group. Several triggers are separated
by a standalone ';' argument. A command written as '|command' receives
the matched text on its standard input.
"""


def parse_triggers(words: list[str]) -> list[TriggerSpec]:
    """Split ``regexp command args... ; regexp command args...`` into specs."""
    groups: list[list[str]] = [[]]
    for word in words:
        if word == GROUP_SEPARATOR:
            groups.append([])
        else:
            groups[-1].append(word)

    specs: list[TriggerSpec] = []
    for group in groups:
        if not group and len(groups) == 1:
            break
        if len(group) < 2:
            raise TriggerConfigError(f"missing regexp or command in {group!r}")
        pattern, command, *args = group
        pipe = command.startswith(PIPE_MARKER)
        if pipe:
            command = command[len(PIPE_MARKER):]
        specs.append(
            TriggerSpec(
                pattern=pattern,
                action=ActionTemplate(command=command, args=tuple(args), pipe=pipe),
            )
        )
    return specs


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tea",
        usage="%(prog)s [options] [regexp command args... [';' regexp command args...]]",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", help="Path to config file")
    parser.add_argument(
        "--bufsize", type=int, help="Match buffer size limit (bytes, default 65536)"
    )
    parser.add_argument("--chunk-size", type=int, help="Read size (bytes)")
    parser.add_argument(
        "--timeout", type=float, help="Kill actions running longer than this (seconds)"
    )
    parser.add_argument("--log-file", help="Also write the log to this file")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Trace matches and actions"
    )
    parser.add_argument("rules", nargs=argparse.REMAINDER, help=argparse.SUPPRESS)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.bufsize is not None and args.bufsize <= 0:
        parser.error("--bufsize must be positive")
    if args.chunk_size is not None and args.chunk_size <= 0:
        parser.error("--chunk-size must be positive")

    try:
        specs = parse_triggers(args.rules)
    except TriggerConfigError as exc:
        parser.error(f"parsing trigger: {exc}")

    from tea.app import TeaApp

    try:
        app = TeaApp(
            config_path=args.config,
            extra_triggers=specs,
            buffer_limit=args.bufsize,
            chunk_size=args.chunk_size,
            timeout=args.timeout,
            log_file=args.log_file,
            verbose=args.verbose,
        )
        return app.run()
    except tomllib.TOMLDecodeError as exc:
        parser.error(f"reading config: {exc}")
    except TriggerConfigError as exc:
        parser.error(f"parsing trigger: {exc}")


if __name__ == "__main__":
    sys.exit(main())
