import sys

import pytest

from readygate import handoff
from readygate.errors import EXIT_RUNTIME, MisconfigurationError, ReadyGateError


def test_spawn_process_returns_child_exit_code(capsys):
    code = handoff.spawn_process([sys.executable, "-c", "raise SystemExit(7)"])
    assert code == 7
    assert capsys.readouterr().out.startswith(f"Running: {sys.executable} [-c ")


def test_make_handoff_requires_command():
    with pytest.raises(MisconfigurationError):
        handoff.make_handoff([])


def test_make_handoff_spawn_mode():
    callback = handoff.make_handoff([sys.executable, "-c", "pass"], spawn=True)
    assert callback() == 0


def test_make_handoff_replaces_process_by_default(monkeypatch):
    calls = []
    monkeypatch.setattr(handoff.os, "execvp", lambda file, args: calls.append((file, args)))

    handoff.make_handoff(["server", "--port", "80"])()

    assert calls == [("server", ["server", "--port", "80"])]


def test_unknown_command_is_reported_when_spawning():
    with pytest.raises(ReadyGateError, match="Cannot run definitely-not-a-real-command-readygate") as excinfo:
        handoff.spawn_process(["definitely-not-a-real-command-readygate"])
    assert excinfo.value.exit_code == EXIT_RUNTIME


def test_unknown_command_is_reported_when_replacing_process():
    callback = handoff.make_handoff(["definitely-not-a-real-command-readygate", "--flag"])
    with pytest.raises(ReadyGateError, match="Cannot run definitely-not-a-real-command-readygate") as excinfo:
        callback()
    assert excinfo.value.exit_code == EXIT_RUNTIME


def test_unexecutable_command_is_reported(tmp_path):
    script = tmp_path / "not-executable.sh"
    script.write_text("#!/bin/sh\nexit 0\n")
    script.chmod(0o644)
    with pytest.raises(ReadyGateError, match="Cannot run"):
        handoff.spawn_process([str(script)])
