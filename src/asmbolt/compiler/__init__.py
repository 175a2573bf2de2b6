from .splitter import join_command, split_command
from .commands import CompileCommand, reconstruct_arguments
from .demangler import DemanglerLocator
from .pipeline import CompilationPipeline, strip_directives
from .database import CompilationDatabase, DatabaseRegistry
