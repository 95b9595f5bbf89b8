"""Tests for the output formatting system."""

from __future__ import annotations

import json

import pytest

from quickcode.output import (
    OutputFormat,
    OutputManager,
    get_output,
    reset_output,
    set_output,
)


class TestFormatResolution:
    def test_auto_is_plain_when_not_a_tty(self) -> None:
        # pytest captures stdout, so it is never a TTY here
        assert OutputManager().format == OutputFormat.PLAIN

    def test_explicit_json(self) -> None:
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON

    def test_no_color_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NO_COLOR", "1")
        output = OutputManager(format=OutputFormat.PLAIN)
        assert output._no_color is True


class TestDataOutput:
    def test_json_dict(self, capsys: pytest.CaptureFixture[str]) -> None:
        OutputManager(format=OutputFormat.JSON).format_response({"a": 1})
        assert json.loads(capsys.readouterr().out) == {"a": 1}

    def test_plain_dict(self, capsys: pytest.CaptureFixture[str]) -> None:
        OutputManager(format=OutputFormat.PLAIN).format_response({"a": 1, "b": "x"})
        assert capsys.readouterr().out == "a\t1\nb\tx\n"

    def test_plain_bool(self, capsys: pytest.CaptureFixture[str]) -> None:
        OutputManager(format=OutputFormat.PLAIN).format_response(True)
        assert capsys.readouterr().out == "true\n"

    def test_json_text_body_is_reparsed(self, capsys: pytest.CaptureFixture[str]) -> None:
        output = OutputManager(format=OutputFormat.JSON)
        output.format_response('{"projectName": "shop"}')
        output.format_response("Table Orders {}")
        out = capsys.readouterr().out
        assert out == '{\n  "projectName": "shop"\n}\n"Table Orders {}"\n'

    def test_rich_bool_is_lowercase(self, capsys: pytest.CaptureFixture[str]) -> None:
        OutputManager(format=OutputFormat.RICH).format_response(False)
        assert capsys.readouterr().out == "false\n"

    def test_plain_list_of_records(self, capsys: pytest.CaptureFixture[str]) -> None:
        OutputManager(format=OutputFormat.PLAIN).format_response(
            [{"name": "Orders", "template": "Empty"}, "Stray"]
        )
        assert capsys.readouterr().out == "Orders\tEmpty\nStray\n"

    def test_table_plain(self, capsys: pytest.CaptureFixture[str]) -> None:
        OutputManager(format=OutputFormat.PLAIN).print_table(
            ["Name", "Template"], [["Orders", "Empty"]]
        )
        assert capsys.readouterr().out == "Name\tTemplate\nOrders\tEmpty\n"

    def test_table_json(self, capsys: pytest.CaptureFixture[str]) -> None:
        OutputManager(format=OutputFormat.JSON).print_table(
            ["Name", "Template"], [["Orders", "Empty"]]
        )
        assert json.loads(capsys.readouterr().out) == [{"Name": "Orders", "Template": "Empty"}]

    def test_data_goes_to_stdout_only(self, capsys: pytest.CaptureFixture[str]) -> None:
        OutputManager(format=OutputFormat.PLAIN).print_data("payload")
        captured = capsys.readouterr()
        assert captured.out == "payload\n"
        assert captured.err == ""


class TestDiagnostics:
    def test_messages_go_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        output = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        output.info("hello")
        output.warning("careful")
        output.error("broken")
        output.suggest("try again")
        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err.splitlines() == [
            "hello",
            "Warning: careful",
            "Error: broken",
            "→ try again",
        ]

    def test_quiet_keeps_warnings_and_errors(self, capsys: pytest.CaptureFixture[str]) -> None:
        output = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        output.info("hello")
        output.success("done")
        output.warning("careful")
        output.error("broken")
        assert capsys.readouterr().err.splitlines() == ["Warning: careful", "Error: broken"]

    def test_debug_only_when_verbose(self, capsys: pytest.CaptureFixture[str]) -> None:
        OutputManager(no_color=True).debug("hidden")
        OutputManager(no_color=True, verbose=True).debug("shown")
        assert capsys.readouterr().err == "[debug] shown\n"

    def test_markup_in_messages_is_escaped(self, capsys: pytest.CaptureFixture[str]) -> None:
        output = OutputManager(format=OutputFormat.PLAIN)
        output.error("bad [bold]value[/bold]")
        assert "[bold]value[/bold]" in capsys.readouterr().err


class TestGlobalInstance:
    def test_lazy_default(self) -> None:
        reset_output()
        assert get_output() is get_output()

    def test_set_and_reset(self) -> None:
        custom = OutputManager(format=OutputFormat.JSON)
        set_output(custom)
        assert get_output() is custom
        reset_output()
        assert get_output() is not custom
