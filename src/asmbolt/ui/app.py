import os
from typing import List, Optional, Sequence

from textual import work
from textual.app import App, ComposeResult
from textual.widgets import Footer, Header, LoadingIndicator, Log, TextArea
from textual.containers import Vertical
from textual.binding import Binding
from textual.message import Message
from ..engine import ExplorerEngine, asm_path_for
from ..errors import AsmBoltError, Cancelled
from ..utils.output import BufferedSink
from ..utils.watcher import FileWatcher
from .command_palette import CommandPalette

# User Palette
C_BG = "#EBEEEE"
C_TEXT = "#191A1A"
C_ACCENT1 = "#45d3ee" # Cyan
C_ACCENT2 = "#9FBFC5" # Muted Blue

class ExplorerApp(App):
    """Assembly view of one source file, compiled the way its build compiles it."""

    CSS = f"""
    Screen {{
        background: {C_BG};
        color: {C_TEXT};
        layers: base popups;
        align: center middle;
    }}

    #main-layout {{
        height: 1fr;
        width: 100%;
        layer: base;
    }}

    #asm-view {{
        height: 1fr;
        border: solid {C_ACCENT2};
        margin: 0 1;
    }}

    #error-view {{ color: #a80000; display: none; height: 1fr; margin: 0 1; }}
    #busy {{ height: 1; display: none; }}
    #output-log {{ height: 12; display: none; border: solid {C_ACCENT2}; margin: 0 1; }}

    CommandPalette {{
        display: none;
        layer: popups;
        margin: 1 1;
    }}

    Footer {{ background: {C_TEXT}; color: {C_ACCENT1}; }}
    """

    BINDINGS = [
        Binding("q", "quit", "Quit", show=True),
        Binding("r", "refresh", "Recompile", show=True),
        Binding("c", "cancel", "Cancel", show=True),
        Binding("o", "toggle_command", "Command", show=True),
        Binding("l", "toggle_log", "Output", show=True),
    ]

    class CompileFinished(Message):
        def __init__(self, asm: str) -> None:
            super().__init__()
            self.asm = asm

    class CompileFailed(Message):
        def __init__(self, error: str, cancelled: bool = False) -> None:
            super().__init__()
            self.error = error
            self.cancelled = cancelled

    def __init__(self, source_file: str, workspace_folder: Optional[str] = None,
                 override_arguments: Optional[Sequence[str]] = None,
                 engine: Optional[ExplorerEngine] = None):
        super().__init__()
        self.source_file = os.path.abspath(source_file)
        if engine is None:
            self.sink = BufferedSink()
            engine = ExplorerEngine(workspace_folder or os.path.dirname(self.source_file), sink=self.sink)
        else:
            self.sink = engine.sink if isinstance(engine.sink, BufferedSink) else BufferedSink()
        self.engine = engine
        self.override_arguments: List[str] = list(override_arguments or [])
        self.source_watcher = FileWatcher()
        self._running = 0
        self._cancel_requested = False
        self.title = os.path.basename(asm_path_for(self.source_file))

    def compose(self) -> ComposeResult:
        yield Header()
        with Vertical(id="main-layout"):
            yield LoadingIndicator(id="busy")
            yield TextArea(id="error-view", read_only=True)
            yield TextArea(id="asm-view", read_only=True)
            yield Log(id="output-log")
        yield CommandPalette(id="command-palette")
        yield Footer()

    def on_mount(self) -> None:
        self.set_interval(0.1, self._flush_output)
        if self.engine.config.get("watch_source", True):
            self.source_watcher.start_watching(self.source_file, self._on_source_saved, debounce_seconds=0.5)
        self.action_refresh()

    def _on_source_saved(self, path: str) -> None:
        # Runs on the watchdog thread
        self.call_from_thread(self.action_refresh)

    @work(thread=True, group="compile")
    def _compile(self, override_arguments: List[str]) -> None:
        try:
            asm = self.engine.compile(self.source_file, override_arguments or None)
        except Cancelled:
            self.post_message(self.CompileFailed("Compilation cancelled", cancelled=True))
        except AsmBoltError as e:
            self.post_message(self.CompileFailed(str(e)))
        else:
            self.post_message(self.CompileFinished(asm))

    def _set_busy(self, delta: int) -> None:
        self._running = max(0, self._running + delta)
        self.query_one("#busy", LoadingIndicator).display = self._running > 0

    def action_refresh(self) -> None:
        self._set_busy(+1)
        self._compile(list(self.override_arguments))

    def action_cancel(self) -> None:
        if self.engine.cancel(self.source_file):
            self._cancel_requested = True
        else:
            self.notify("Nothing to cancel")

    def action_toggle_log(self) -> None:
        log = self.query_one("#output-log", Log)
        log.display = not log.display

    def action_toggle_command(self) -> None:
        try:
            command = self.engine.database_for(self.source_file).lookup(self.source_file)
        except AsmBoltError:
            command = None
        database_arguments = list(command.arguments) if command else []
        self.query_one("#command-palette", CommandPalette).show(database_arguments, self.override_arguments)

    def on_command_palette_command_changed(self, message: CommandPalette.CommandChanged) -> None:
        self.override_arguments = list(message.arguments)
        if message.cleared:
            self.notify("Using the compile_commands.json entry")
        self.action_refresh()

    def on_explorer_app_compile_finished(self, message: CompileFinished) -> None:
        self._set_busy(-1)
        self._cancel_requested = False
        error_view, asm_view = self.query_one("#error-view", TextArea), self.query_one("#asm-view", TextArea)
        error_view.display, asm_view.display = False, True
        asm_view.text = message.asm

    def on_explorer_app_compile_failed(self, message: CompileFailed) -> None:
        self._set_busy(-1)
        if message.cancelled:
            # Runs replaced by a newer one end here too; only a user cancel is announced
            if self._cancel_requested:
                self._cancel_requested = False
                self.notify(message.error)
            return
        error_view = self.query_one("#error-view", TextArea)
        error_view.display = True
        self.query_one("#asm-view", TextArea).display = False
        error_view.text = message.error

    def _flush_output(self) -> None:
        log = self.query_one("#output-log", Log)
        for line in self.sink.drain():
            log.write_lines(line.splitlines() or [""])
        if self.sink.take_show_request():
            log.display = True

    def on_unmount(self) -> None:
        self.source_watcher.stop_watching()
        self.engine.shutdown()

def run_tui(source_file: str, workspace_folder: Optional[str] = None,
            override_arguments: Optional[Sequence[str]] = None):
    app = ExplorerApp(source_file, workspace_folder, override_arguments)
    app.run()
