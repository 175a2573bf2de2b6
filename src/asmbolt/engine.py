import logging
import os
from typing import Optional, Sequence

from .compiler.database import DATABASE_FILENAME, CompilationDatabase, DatabaseRegistry
from .compiler.demangler import DemanglerLocator
from .utils.config import ConfigManager, resolve_path
from .utils.output import LoggingSink, OutputSink

LOG = logging.getLogger("asmbolt.engine")


def asm_path_for(source_file: str) -> str:
    """Path of the assembly view for a source file: same name, `.S` extension."""
    root, ext = os.path.splitext(source_file)
    return (root if ext else source_file) + ".S"


class ExplorerEngine:
    """
    Drives compile requests for one workspace: picks the compilation database
    for a source file and runs it through that database's pipeline.
    """

    def __init__(self, workspace_folder: str, config: Optional[ConfigManager] = None,
                 sink: Optional[OutputSink] = None, watch: bool = True):
        self.workspace_folder = os.path.abspath(workspace_folder)
        self.config = config if config else ConfigManager()
        self.sink = sink if sink else LoggingSink()
        self.registry = DatabaseRegistry(
            sink=self.sink,
            locator=DemanglerLocator(self.config.get("demangler", "c++filt")),
            environment=self.config.environment,
            argument_rewrites=self.config.argument_rewrites,
            watch=watch,
        )

    def build_directory_for(self, source_file: str) -> str:
        template = self.config.get("compilation_directory", "${workspaceFolder}")
        return resolve_path(template, source_file, self.workspace_folder)

    def database_for(self, source_file: str) -> CompilationDatabase:
        location = os.path.join(self.build_directory_for(source_file), DATABASE_FILENAME)
        return self.registry.open_or_get(location)

    def compile(self, source_file: str, override_arguments: Optional[Sequence[str]] = None) -> str:
        database = self.database_for(source_file)
        LOG.info("Compiling %s", source_file)
        return database.compile(source_file, override_arguments)

    def cancel(self, source_file: str) -> bool:
        """Cancels the run in flight for source_file's database, if any."""
        location = os.path.join(self.build_directory_for(source_file), DATABASE_FILENAME)
        database = self.registry.get(location)
        return database.cancel_compilation() if database else False

    def shutdown(self):
        self.registry.close_all()
