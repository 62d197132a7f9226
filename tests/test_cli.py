"""Tests for the console front end."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tm_fieldset.cli import HELP_TEXT, _main_async, main, run_console
from tm_fieldset.config import FieldSetConfig
from tm_fieldset.connection import FieldSetConnection
from tm_fieldset.errors import HandshakeTimeoutError, NoActiveFieldError


def scripted(*lines: str):
    """Return a read_line function replaying lines, then end of input."""
    remaining = list(lines)

    def read_line(prompt: str) -> str:
        if not remaining:
            raise EOFError
        return remaining.pop(0)

    return read_line


@pytest.fixture
def tm() -> MagicMock:
    connection = MagicMock(spec=FieldSetConnection)
    connection.queue_next_match.side_effect = NotImplementedError
    connection.queue_previous_match.side_effect = NotImplementedError
    return connection


class TestRunConsole:
    """Tests for run_console()."""

    async def test_commands_dispatched(self, tm):
        """Test each key calls its connection method."""
        await run_console(tm, scripted("s", "e", "a", "r", "c", "q"))

        tm.start_match.assert_awaited_once()
        tm.end_early.assert_awaited_once()
        tm.abort_match.assert_awaited_once()
        tm.reset_timer.assert_awaited_once()
        tm.connect.assert_awaited_once()

    async def test_quit_stops_reading(self, tm):
        """Test nothing after q is processed."""
        await run_console(tm, scripted("q", "s"))
        tm.start_match.assert_not_awaited()

    async def test_end_of_input_stops(self, tm):
        """Test EOF ends the loop like quit."""
        await run_console(tm, scripted("s"))
        tm.start_match.assert_awaited_once()

    async def test_help_and_unknown(self, tm, capsys):
        """Test help is printed and unknown keys are reported."""
        await run_console(tm, scripted("h", "x", "q"))

        out = capsys.readouterr().out
        assert out.count(HELP_TEXT) == 2
        assert out.count("Command not recognized.") == 1

    async def test_unsupported_commands(self, tm, capsys):
        """Test queue commands report they are unsupported."""
        await run_console(tm, scripted("n", "p", "q"))

        assert capsys.readouterr().out.count("Not yet supported") == 2

    async def test_command_errors_do_not_exit(self, tm, capsys):
        """Test client errors are printed and the loop continues."""
        tm.start_match.side_effect = NoActiveFieldError("no active field")

        await run_console(tm, scripted("s", "r", "q"))

        assert "Command failed: no active field" in capsys.readouterr().out
        tm.reset_timer.assert_awaited_once()


class TestMainAsync:
    """Tests for _main_async()."""

    async def test_connect_failure_keeps_console(self, tm):
        """Test a failed first connect still hands control to the operator."""
        tm.connect.side_effect = HandshakeTimeoutError("no notice")
        config = FieldSetConfig(address="tm.local", password="pw")

        with (
            patch("tm_fieldset.cli.FieldSetConnection", return_value=tm),
            patch("tm_fieldset.cli.run_console", new_callable=AsyncMock) as console,
        ):
            assert await _main_async(config) == 0

        console.assert_awaited_once_with(tm)
        tm.close.assert_awaited_once()


class TestMain:
    """Tests for main()."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in ("TM_ADDRESS", "TM_PASSWORD", "TM_FIELD_SET", "TM_HANDSHAKE_TIMEOUT"):
            monkeypatch.delenv(name, raising=False)

    def test_requires_address_and_password(self, monkeypatch):
        """Test missing connection settings exit with usage error."""
        monkeypatch.delenv("TM_ADDRESS", raising=False)
        monkeypatch.delenv("TM_PASSWORD", raising=False)

        with pytest.raises(SystemExit) as exc_info:
            main([])

        assert exc_info.value.code == 2

    def test_invalid_field_set(self, capsys):
        """Test config errors return exit status 2."""
        assert main(["--address", "tm.local", "--password", "pw", "--field-set", "0"]) == 2

    def test_runs_console(self):
        """Test a valid config starts the async main."""
        with patch("tm_fieldset.cli._main_async", return_value=0) as main_async:
            assert main(["--address", "tm.local", "--password", "pw"]) == 0

        config = main_async.call_args.args[0]
        assert config.address == "tm.local"
        assert config.field_set == 1

    def test_settings_from_environment(self, monkeypatch):
        """Test TM_* variables fill in missing options."""
        monkeypatch.setenv("TM_ADDRESS", "tm.local")
        monkeypatch.setenv("TM_PASSWORD", "pw")
        monkeypatch.setenv("TM_FIELD_SET", "3")

        with patch("tm_fieldset.cli._main_async", return_value=0) as main_async:
            assert main(["--field-set", "2"]) == 0

        config = main_async.call_args.args[0]
        assert config.address == "tm.local"
        assert config.field_set == 2

    def test_invalid_environment_value(self, monkeypatch, capsys):
        """Test a malformed TM_FIELD_SET is a config error, not a traceback."""
        monkeypatch.setenv("TM_FIELD_SET", "abc")

        assert main(["--address", "tm.local", "--password", "pw"]) == 2
        assert "TM_FIELD_SET" in capsys.readouterr().err
