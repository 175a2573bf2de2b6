"""
asmbolt: compile one file exactly as the build does, and read its assembly.

Pipeline: compile_commands.json -> compiler -S -> c++filt -> filtered asm
"""
from .compiler import (
    CompilationDatabase,
    CompilationPipeline,
    CompileCommand,
    DatabaseRegistry,
    DemanglerLocator,
    reconstruct_arguments,
    split_command,
    strip_directives,
)
from .engine import ExplorerEngine, asm_path_for
from .errors import AsmBoltError, Cancelled, CompilationFailed, NotFound, ParseError, SpawnError
