"""
Exception types raised by the compilation pipeline.
Callers catch these at the UI/CLI boundary and turn them into messages.
"""


class AsmBoltError(Exception):
    """Base class for every error raised by asmbolt."""


class NotFound(AsmBoltError):
    """No compile command (or no compilation database) for a source file."""


class ParseError(AsmBoltError):
    """The compilation database is not valid JSON or has the wrong shape."""


class CompilationFailed(AsmBoltError):
    """The compiler or the demangler exited with an error."""


class Cancelled(CompilationFailed):
    """The run was cancelled, either by the user or by a newer request."""


class SpawnError(CompilationFailed):
    """A subprocess could not be started."""
