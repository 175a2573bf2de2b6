from typing import List, Sequence

from rich.text import Text
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.message import Message
from textual.validation import ValidationResult, Validator
from textual.widgets import Input, Label, Static

from ..compiler.splitter import join_command, split_command

HINT = "Enter: compile with this command   Empty: back to the database entry   Ctrl+O: edit the entry   Esc: close"


class CompileCommandValidator(Validator):
    """A blank line, or a command line whose first token is the compiler."""

    def validate(self, value: str) -> ValidationResult:
        if not value.strip():
            return self.success()
        arguments = split_command(value)
        if not arguments:
            return self.failure("The command has no arguments")
        if arguments[0].startswith("-"):
            return self.failure(f"Start with the compiler, not the flag {arguments[0]}")
        return self.success()


class CommandPalette(Vertical):
    """
    Overrides the compile command of the current file.

    Shows the entry from compile_commands.json that the override replaces. The
    typed line is split like a database `command` string before it is posted.
    """

    DEFAULT_CSS = """
    CommandPalette {
        display: none;
        width: 100;
        height: auto;
        background: #EBEEEE;
        border: solid #45d3ee;
        padding: 1 2;
    }

    CommandPalette .title { color: #191A1A; text-style: bold; }
    CommandPalette #database-command { color: #5f6b6b; margin-bottom: 1; }
    CommandPalette #command-status { color: #5f6b6b; }
    CommandPalette #command-status.-invalid { color: #a80000; }
    CommandPalette Input { background: #FFFFFF; color: #191A1A; border: solid #94bfc1; }
    """

    BINDINGS = [
        Binding("escape", "close", "Close", show=False),
        Binding("ctrl+o", "edit_entry", "Edit entry", show=False),
    ]

    class CommandChanged(Message):
        """`arguments` is empty when the override was cleared."""

        def __init__(self, arguments: List[str]) -> None:
            super().__init__()
            self.arguments = arguments

        @property
        def cleared(self) -> bool:
            return not self.arguments

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.database_arguments: List[str] = []

    def compose(self) -> ComposeResult:
        yield Label("Compile Command", classes="title")
        yield Static(id="database-command")
        yield Input(
            placeholder="/usr/bin/clang++ -O2 -std=c++20 ...",
            id="command-input",
            validators=[CompileCommandValidator()],
            validate_on=["changed", "submitted"],
        )
        yield Label(HINT, id="command-status")

    def show(self, database_arguments: Sequence[str], override_arguments: Sequence[str] = ()):
        self.database_arguments = list(database_arguments)
        entry = join_command(self.database_arguments) or "no entry in compile_commands.json"
        # Text, so brackets in flags are not read as markup
        self.query_one("#database-command", Static).update(Text(f"Database: {entry}"))
        self._set_status(HINT)

        self.display = True
        input_widget = self.query_one("#command-input", Input)
        input_widget.value = join_command(override_arguments)
        input_widget.focus()

    def _set_status(self, text: str, invalid: bool = False):
        status = self.query_one("#command-status", Label)
        status.update(Text(text))
        status.set_class(invalid, "-invalid")

    def on_input_changed(self, event: Input.Changed):
        result = event.validation_result
        if result is not None and not result.is_valid:
            self._set_status(result.failure_descriptions[0], invalid=True)
        else:
            self._set_status(HINT)

    def on_input_submitted(self, event: Input.Submitted):
        event.stop()
        result = event.validation_result
        if result is not None and not result.is_valid:
            self._set_status(result.failure_descriptions[0], invalid=True)
            return
        self.post_message(self.CommandChanged(split_command(event.value)))
        self.display = False

    def action_close(self):
        self.display = False

    def action_edit_entry(self):
        if not self.database_arguments:
            return
        input_widget = self.query_one("#command-input", Input)
        input_widget.value = join_command(self.database_arguments)
        input_widget.cursor_position = len(input_widget.value)
