"""
Tests for the ExplorerApp UI wiring, with a fake engine.

The engine never spawns a compiler here: these tests check that compile
results reach the right widgets, that pipeline output lands in the output
log, and that the command palette feeds the override back into a recompile.
"""
from unittest.mock import MagicMock

import pytest
from textual.widgets import Footer, Input, Log, TextArea

from asmbolt.compiler.commands import CompileCommand
from asmbolt.errors import Cancelled, CompilationFailed
from asmbolt.ui.app import ExplorerApp
from asmbolt.ui.command_palette import CommandPalette, CompileCommandValidator
from asmbolt.utils.output import BufferedSink


class FakeEngine:
    """Stands in for ExplorerEngine; compile() returns canned assembly."""

    def __init__(self, asm="main:\n\tret\n", error=None):
        self.sink = BufferedSink()
        self.config = MagicMock()
        self.config.get.return_value = False
        self.asm = asm
        self.error = error
        self.compile_calls = []
        self.cancel = MagicMock(return_value=False)
        self.shutdown = MagicMock()
        database = MagicMock()
        database.lookup.return_value = CompileCommand("/b", "a.cpp", ("/usr/bin/g++", "-O2"))
        self.database_for = MagicMock(return_value=database)

    def compile(self, source_file, override_arguments=None):
        self.compile_calls.append(override_arguments)
        self.sink.append_line("Compiling using: g++")
        if self.error is not None:
            raise self.error
        return self.asm


async def _settle(pilot):
    await pilot.app.workers.wait_for_complete()
    await pilot.pause()


def _app(tmp_path, engine, override=None):
    source = tmp_path / "a.cpp"
    source.write_text("int main() {}\n")
    return ExplorerApp(str(source), str(tmp_path), override, engine=engine)


class TestLayout:

    @pytest.mark.asyncio
    async def test_widgets_present(self, tmp_path):
        app = _app(tmp_path, FakeEngine())
        async with app.run_test(size=(120, 40)) as pilot:
            await _settle(pilot)
            assert pilot.app.query_one("#asm-view", TextArea) is not None
            assert pilot.app.query_one("#error-view", TextArea) is not None
            assert pilot.app.query_one("#output-log", Log) is not None
            assert pilot.app.query_one(Footer) is not None

    def test_title_is_asm_file(self, tmp_path):
        app = _app(tmp_path, FakeEngine())
        assert app.title == "a.S"


class TestCompileResults:

    @pytest.mark.asyncio
    async def test_asm_shown_on_mount(self, tmp_path):
        engine = FakeEngine(asm="foo():\n\tret\n")
        app = _app(tmp_path, engine)
        async with app.run_test(size=(120, 40)) as pilot:
            await _settle(pilot)
            assert pilot.app.query_one("#asm-view", TextArea).text == "foo():\n\tret\n"
            assert pilot.app.query_one("#error-view", TextArea).display is False
        assert engine.compile_calls == [None]

    @pytest.mark.asyncio
    async def test_failure_shows_error_view(self, tmp_path):
        engine = FakeEngine(error=CompilationFailed("compilation failed: g++ exited with code 1"))
        app = _app(tmp_path, engine)
        async with app.run_test(size=(120, 40)) as pilot:
            await _settle(pilot)
            error_view = pilot.app.query_one("#error-view", TextArea)
            assert error_view.display is True
            assert "exited with code 1" in error_view.text
            assert pilot.app.query_one("#asm-view", TextArea).display is False

    @pytest.mark.asyncio
    async def test_cancel_keeps_previous_view(self, tmp_path):
        engine = FakeEngine(error=Cancelled("operation cancelled"))
        app = _app(tmp_path, engine)
        async with app.run_test(size=(120, 40)) as pilot:
            await _settle(pilot)
            assert pilot.app.query_one("#error-view", TextArea).display is False

    @pytest.mark.asyncio
    async def test_refresh_recompiles(self, tmp_path):
        engine = FakeEngine()
        app = _app(tmp_path, engine, override=["clang++", "-O3"])
        async with app.run_test(size=(120, 40)) as pilot:
            await _settle(pilot)
            pilot.app.action_refresh()
            await _settle(pilot)
        assert engine.compile_calls == [["clang++", "-O3"], ["clang++", "-O3"]]

    @pytest.mark.asyncio
    async def test_cancel_action_asks_engine(self, tmp_path):
        engine = FakeEngine()
        app = _app(tmp_path, engine)
        async with app.run_test(size=(120, 40)) as pilot:
            await _settle(pilot)
            pilot.app.action_cancel()
            await pilot.pause()
        engine.cancel.assert_called_once_with(str(tmp_path / "a.cpp"))

    @pytest.mark.asyncio
    async def test_engine_shut_down_on_exit(self, tmp_path):
        engine = FakeEngine()
        app = _app(tmp_path, engine)
        async with app.run_test(size=(120, 40)) as pilot:
            await _settle(pilot)
        engine.shutdown.assert_called_once()


class TestOutputLog:

    @pytest.mark.asyncio
    async def test_sink_lines_reach_log(self, tmp_path):
        engine = FakeEngine()
        app = _app(tmp_path, engine)
        async with app.run_test(size=(120, 40)) as pilot:
            await _settle(pilot)
            await pilot.pause(0.3)
            log = pilot.app.query_one("#output-log", Log)
            assert any("Compiling using: g++" in line for line in log.lines)

    @pytest.mark.asyncio
    async def test_show_request_reveals_log(self, tmp_path):
        engine = FakeEngine()
        app = _app(tmp_path, engine)
        async with app.run_test(size=(120, 40)) as pilot:
            await _settle(pilot)
            log = pilot.app.query_one("#output-log", Log)
            assert log.display is False
            engine.sink.append_line("a.cpp:1:1: warning: unused")
            engine.sink.show()
            await pilot.pause(0.3)
            assert log.display is True

    @pytest.mark.asyncio
    async def test_toggle_log(self, tmp_path):
        app = _app(tmp_path, FakeEngine())
        async with app.run_test(size=(120, 40)) as pilot:
            await _settle(pilot)
            pilot.app.action_toggle_log()
            assert pilot.app.query_one("#output-log", Log).display is True


class TestCancelNotices:

    @pytest.mark.asyncio
    async def test_user_cancel_is_announced(self, tmp_path):
        engine = FakeEngine()
        engine.cancel.return_value = True
        app = _app(tmp_path, engine)
        async with app.run_test(size=(120, 40)) as pilot:
            await _settle(pilot)
            pilot.app.notify = MagicMock()
            pilot.app.action_cancel()
            pilot.app.post_message(ExplorerApp.CompileFailed("Compilation cancelled", cancelled=True))
            await pilot.pause()
            pilot.app.notify.assert_called_once_with("Compilation cancelled")

    @pytest.mark.asyncio
    async def test_superseded_run_is_silent(self, tmp_path):
        app = _app(tmp_path, FakeEngine())
        async with app.run_test(size=(120, 40)) as pilot:
            await _settle(pilot)
            pilot.app.notify = MagicMock()
            pilot.app.post_message(ExplorerApp.CompileFailed("Compilation cancelled", cancelled=True))
            await pilot.pause()
            pilot.app.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_nothing_to_cancel(self, tmp_path):
        app = _app(tmp_path, FakeEngine())
        async with app.run_test(size=(120, 40)) as pilot:
            await _settle(pilot)
            pilot.app.notify = MagicMock()
            pilot.app.action_cancel()
            pilot.app.notify.assert_called_once_with("Nothing to cancel")


class TestCommandPalette:

    async def _open(self, pilot):
        await _settle(pilot)
        pilot.app.action_toggle_command()
        await pilot.pause()
        return pilot.app.query_one("#command-palette", CommandPalette)

    @pytest.mark.asyncio
    async def test_shows_database_entry(self, tmp_path):
        app = _app(tmp_path, FakeEngine())
        async with app.run_test(size=(120, 40)) as pilot:
            palette = await self._open(pilot)
            assert palette.display is True
            assert palette.database_arguments == ["/usr/bin/g++", "-O2"]
            assert palette.query_one("#command-input", Input).value == ""

    @pytest.mark.asyncio
    async def test_prefilled_with_current_override(self, tmp_path):
        app = _app(tmp_path, FakeEngine(), override=["clang++", "-DNAME=a b"])
        async with app.run_test(size=(120, 40)) as pilot:
            palette = await self._open(pilot)
            assert palette.query_one("#command-input", Input).value == 'clang++ "-DNAME=a b"'

    @pytest.mark.asyncio
    async def test_edit_entry_copies_database_command(self, tmp_path):
        app = _app(tmp_path, FakeEngine())
        async with app.run_test(size=(120, 40)) as pilot:
            palette = await self._open(pilot)
            palette.action_edit_entry()
            assert palette.query_one("#command-input", Input).value == "/usr/bin/g++ -O2"

    @pytest.mark.asyncio
    async def test_submit_recompiles_with_override(self, tmp_path):
        engine = FakeEngine()
        app = _app(tmp_path, engine)
        async with app.run_test(size=(120, 40)) as pilot:
            palette = await self._open(pilot)
            palette.query_one("#command-input", Input).value = "clang++ -O1 '-DNAME=a b'"
            await pilot.press("enter")
            await _settle(pilot)
            assert palette.display is False
            assert pilot.app.override_arguments == ["clang++", "-O1", "-DNAME=a b"]
        assert engine.compile_calls[-1] == ["clang++", "-O1", "-DNAME=a b"]

    @pytest.mark.asyncio
    async def test_flag_first_is_rejected(self, tmp_path):
        engine = FakeEngine()
        app = _app(tmp_path, engine)
        async with app.run_test(size=(120, 40)) as pilot:
            palette = await self._open(pilot)
            palette.query_one("#command-input", Input).value = "-O3 a.cpp"
            await pilot.press("enter")
            await _settle(pilot)
            assert palette.display is True
            assert palette.query_one("#command-status").has_class("-invalid")
            assert pilot.app.override_arguments == []
        assert engine.compile_calls == [None]

    @pytest.mark.asyncio
    async def test_empty_submit_clears_override(self, tmp_path):
        engine = FakeEngine()
        app = _app(tmp_path, engine, override=["clang++", "-O3"])
        async with app.run_test(size=(120, 40)) as pilot:
            palette = await self._open(pilot)
            palette.query_one("#command-input", Input).value = ""
            await pilot.press("enter")
            await _settle(pilot)
            assert pilot.app.override_arguments == []
        assert engine.compile_calls == [["clang++", "-O3"], None]

    @pytest.mark.asyncio
    async def test_escape_closes(self, tmp_path):
        app = _app(tmp_path, FakeEngine())
        async with app.run_test(size=(120, 40)) as pilot:
            palette = await self._open(pilot)
            await pilot.press("escape")
            assert palette.display is False


class TestCompileCommandValidator:

    def test_blank_accepted(self):
        assert CompileCommandValidator().validate("   ").is_valid

    def test_compiler_first_accepted(self):
        assert CompileCommandValidator().validate("g++ -O2").is_valid

    def test_quotes_only_rejected(self):
        assert not CompileCommandValidator().validate("'' \"\"").is_valid

    def test_flag_first_rejected(self):
        result = CompileCommandValidator().validate("-O2 a.c")
        assert not result.is_valid
        assert "-O2" in result.failure_descriptions[0]
