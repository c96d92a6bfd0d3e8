from __future__ import annotations

import subprocess
import sys
from unittest.mock import patch

import pytest

from tea.stream.dispatch import (
    ActionError,
    ActionTemplate,
    Dispatcher,
    SubprocessRunner,
    expand,
)
from tea.stream.pattern import Pattern


def _match(pattern: str, data: bytes):
    match, _ = Pattern(pattern).find(data, allow_partial=True)
    assert match is not None
    return match


# ── Interpolation ─────────────────────────────────────────────────


def test_expand_whole_match_and_groups() -> None:
    m = _match(r"build finished in (\d+\.\d+) seconds", b"build finished in 3.2 seconds\n")
    assert expand("Build complete after $1 seconds", m) == "Build complete after 3.2 seconds"
    assert expand("$0", m) == "build finished in 3.2 seconds"
    assert expand("${1}s", m) == "3.2s"


def test_expand_named_groups() -> None:
    m = _match(r"(?P<user>\w+) logged in from (?P<host>\S+)", b"alice logged in from 10.0.0.1\n")
    assert expand("$user@$host", m) == "alice@10.0.0.1"
    assert expand("${user}_x", m) == "alice_x"


def test_expand_unmatched_and_unknown_groups_are_empty() -> None:
    m = _match(r"a(b)?(c)", b"ac\n")
    assert expand("[$1][$2][$7][$nope]", m) == "[][c][][]"


def test_expand_name_is_longest_word_run() -> None:
    m = _match(r"(\d+)", b"42\n")
    # $1x refers to a group named "1x", which does not exist.
    assert expand("$1x", m) == ""
    assert expand("${1}x", m) == "42x"


def test_expand_literal_dollars() -> None:
    m = _match(r"(\d+)", b"42\n")
    assert expand("$$1 costs $", m) == "$1 costs $"
    assert expand("${}", m) == "${}"


def test_expand_is_not_shell_interpreted() -> None:
    m = _match(r"(.*)", b"$(rm -rf /); `id`\n")
    assert expand("$1", m) == "$(rm -rf /); `id`"


def test_template_expands_every_argument() -> None:
    template = ActionTemplate("notify", ("-t", "tea", "got $1"))
    m = _match(r"(\w+)", b"hello\n")
    assert template.expand(m) == ["-t", "tea", "got hello"]


# ── Dispatcher ────────────────────────────────────────────────────


def test_dispatch_runs_action(runner) -> None:
    d = Dispatcher(ActionTemplate("notify", ("saw $1",)), runner)
    d.dispatch(_match(r"(\w+)", b"hello\n"))
    d.close()
    assert runner.calls == [("notify", ["saw hello"], None)]
    assert d.dispatched == 1
    assert d.failed == 0


def test_pipe_mode_sends_text_on_stdin(runner) -> None:
    d = Dispatcher(ActionTemplate("logger", ("-t", "tea"), pipe=True), runner)
    d.dispatch(_match(r"ERROR: .*", b"ERROR: disk full\n"))
    d.close()
    command, args, stdin = runner.calls[0]
    assert command == "logger"
    assert "ERROR: disk full" not in args
    assert stdin == b"ERROR: disk full"


def test_actions_are_serialized_in_order(slow_runner) -> None:
    d = Dispatcher(ActionTemplate("echo", ("$1",)), slow_runner)
    for i in range(5):
        d.dispatch(_match(r"(\d)", f"{i}\n".encode()))
    assert d.busy
    d.close()
    assert slow_runner.max_running == 1
    assert [c[1] for c in slow_runner.calls] == [["0"], ["1"], ["2"], ["3"], ["4"]]
    assert not d.busy


def test_failure_is_logged_and_does_not_stop_later_actions(failing_runner, caplog) -> None:
    d = Dispatcher(ActionTemplate("missing"), failing_runner, name="t0")
    d.dispatch(_match(r"x", b"x\n"))
    d.dispatch(_match(r"x", b"x\n"))
    d.close()
    assert len(failing_runner.calls) == 2
    assert d.failed == 2
    assert "t0: missing: not found" in caplog.text


def test_unexpected_error_is_raised_on_close() -> None:
    class Broken:
        def run(self, command, args, stdin=None):
            raise KeyError("boom")

    d = Dispatcher(ActionTemplate("x"), Broken())
    d.dispatch(_match(r"x", b"x\n"))
    with pytest.raises(KeyError):
        d.close()


# ── Subprocess runner ─────────────────────────────────────────────


class TestSubprocessRunner:
    def test_runs_command_with_args(self, tmp_path) -> None:
        out = tmp_path / "out.txt"
        runner = SubprocessRunner(output=subprocess.DEVNULL)
        runner.run(
            sys.executable,
            ["-c", "import sys; open(sys.argv[1], 'w').write(sys.argv[2])", str(out), "3.2"],
        )
        assert out.read_text() == "3.2"

    def test_delivers_stdin(self, tmp_path) -> None:
        out = tmp_path / "out.txt"
        runner = SubprocessRunner(output=subprocess.DEVNULL)
        runner.run(
            sys.executable,
            ["-c", "import sys; open(sys.argv[1], 'wb').write(sys.stdin.buffer.read())", str(out)],
            stdin=b"ERROR: disk full",
        )
        assert out.read_bytes() == b"ERROR: disk full"

    def test_nonzero_exit_raises(self) -> None:
        runner = SubprocessRunner(output=subprocess.DEVNULL)
        with pytest.raises(ActionError) as excinfo:
            runner.run(sys.executable, ["-c", "raise SystemExit(3)"])
        assert excinfo.value.returncode == 3

    def test_missing_command_raises_oserror(self) -> None:
        runner = SubprocessRunner(output=subprocess.DEVNULL)
        with pytest.raises(OSError):
            runner.run("/nonexistent/tea-action", [])

    def test_nul_byte_in_args_raises_action_error(self) -> None:
        runner = SubprocessRunner(output=subprocess.DEVNULL)
        with pytest.raises(ActionError, match="null byte"):
            runner.run(sys.executable, ["-c", "pass", "a\x00b"])

    def test_timeout_raises(self) -> None:
        runner = SubprocessRunner(output=subprocess.DEVNULL, timeout=0.2)
        with pytest.raises(ActionError, match="timed out"):
            runner.run(sys.executable, ["-c", "import time; time.sleep(5)"])

    def test_output_defaults_to_stderr(self) -> None:
        runner = SubprocessRunner()
        with patch("tea.stream.dispatch.subprocess.run") as mock_run:
            mock_run.return_value.returncode = 0
            runner.run("notify", ["hi"])
        kwargs = mock_run.call_args.kwargs
        assert mock_run.call_args.args[0] == ["notify", "hi"]
        assert kwargs["stdout"] is sys.stderr
        assert kwargs["stdin"] is subprocess.DEVNULL
        assert kwargs["timeout"] is None
