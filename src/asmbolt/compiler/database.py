"""
Compilation database: compile_commands.json loaded into a per-file index.

One CompilationDatabase exists per database file. The DatabaseRegistry hands
them out, watches each file on disk, reloads on change and retires an instance
when its file is deleted.
"""
import json
import logging
import os
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .commands import CompileCommand, reconstruct_arguments
from .demangler import DemanglerLocator
from .pipeline import CompilationPipeline
from ..errors import NotFound, ParseError
from ..utils.cancellation import CancellationTokenSource
from ..utils.output import LoggingSink, OutputSink
from ..utils.watcher import FileWatcher

LOG = logging.getLogger("asmbolt.database")

DATABASE_FILENAME = "compile_commands.json"


def _parse_entry(entry: Any, index: int) -> CompileCommand:
    if not isinstance(entry, dict):
        raise ParseError(f"entry {index} is not an object")

    directory = entry.get("directory")
    file = entry.get("file")
    command = entry.get("command") or ""
    arguments = entry.get("arguments") or []
    if not isinstance(directory, str) or not isinstance(file, str):
        raise ParseError(f"entry {index} needs string 'directory' and 'file'")
    if not isinstance(command, str):
        raise ParseError(f"entry {index}: 'command' must be a string")
    if not isinstance(arguments, list) or not all(isinstance(a, str) for a in arguments):
        raise ParseError(f"entry {index}: 'arguments' must be a list of strings")

    args = reconstruct_arguments(command, arguments, directory)
    if not args:
        raise ParseError(f"entry {index} ({file}) has neither 'command' nor 'arguments'")

    # The pipeline passes the absolute source path itself
    args = [args[0]] + [arg for arg in args[1:] if arg != file]
    return CompileCommand(directory=directory, file=file, arguments=tuple(args))


class CompilationDatabase:
    def __init__(self, location: str, commands: Dict[str, CompileCommand],
                 registry: Optional["DatabaseRegistry"] = None):
        self.location = location
        self.build_directory = os.path.dirname(location)
        self.commands = commands
        self.registry = registry
        self.watcher: Optional[FileWatcher] = None
        self._token_lock = threading.Lock()
        self._active: Optional[CancellationTokenSource] = None
        self.pipeline: Optional[CompilationPipeline] = None

    @staticmethod
    def load(location: str) -> Dict[str, CompileCommand]:
        LOG.info("Loading compilation database from %s", location)
        try:
            with open(location, "r") as f:
                entries = json.load(f)
        except FileNotFoundError as e:
            raise NotFound(f"compilation database not found: {location}") from e
        except json.JSONDecodeError as e:
            raise ParseError(f"{location}: {e}") from e
        except OSError as e:
            raise ParseError(f"cannot read {location}: {e}") from e

        if not isinstance(entries, list):
            raise ParseError(f"{location}: expected a JSON array of compile commands")

        commands: Dict[str, CompileCommand] = {}
        for index, entry in enumerate(entries):
            command = _parse_entry(entry, index)
            commands[command.file] = command
        LOG.info("Loaded %d compile commands", len(commands))
        return commands

    def lookup(self, source_path: str) -> Optional[CompileCommand]:
        """
        Returns the command recorded for source_path, or None when the file is
        not part of the build.
        """
        absolute = os.path.normpath(os.path.abspath(source_path))
        prefix = self.build_directory.rstrip(os.sep) + os.sep
        key = absolute[len(prefix):] if absolute.startswith(prefix) else absolute

        commands = self.commands
        LOG.debug("get command for file %s", key)
        command = commands.get(key)
        if command is None and key != absolute:
            command = commands.get(absolute)
        return command

    def reload(self):
        try:
            commands = self.load(self.location)
        except (NotFound, ParseError) as e:
            LOG.warning("Keeping previous compile commands, reload failed: %s", e)
            return
        self.commands = commands

    # --- single-flight compilation ---

    def begin_compilation(self) -> CancellationTokenSource:
        """Cancels whatever run is in flight and installs a fresh token."""
        source = CancellationTokenSource()
        with self._token_lock:
            previous, self._active = self._active, source
        if previous is not None:
            previous.cancel()
        return source

    def end_compilation(self, source: CancellationTokenSource):
        with self._token_lock:
            if self._active is source:
                self._active = None
        source.dispose()

    def cancel_compilation(self) -> bool:
        with self._token_lock:
            active = self._active
        if active is None:
            return False
        active.cancel()
        return True

    @property
    def is_compiling(self) -> bool:
        return self._active is not None

    def compile(self, source_path: str, override_arguments: Optional[Sequence[str]] = None) -> str:
        if self.pipeline is None:
            raise RuntimeError("database is not attached to a pipeline")
        return self.pipeline.run(source_path, override_arguments)

    # --- lifecycle ---

    def watch(self):
        self.watcher = FileWatcher()
        self.watcher.start_watching(self.location, self._on_changed, self._on_deleted)

    def _on_changed(self, path: str):
        LOG.info("Compilation database changed: %s", path)
        self.reload()

    def _on_deleted(self, path: str):
        LOG.info("Compilation database deleted: %s", path)
        if self.registry is not None:
            self.registry.retire(self)
        else:
            self.dispose()

    def dispose(self):
        self.cancel_compilation()
        if self.watcher is not None:
            self.watcher.stop_watching()
            self.watcher = None


class DatabaseRegistry:
    """
    Owns every live CompilationDatabase, at most one per database file, plus the
    demangler cache and pipeline settings they share.
    """

    def __init__(self, sink: Optional[OutputSink] = None, locator: Optional[DemanglerLocator] = None,
                 environment: Optional[Dict[str, str]] = None,
                 argument_rewrites: Optional[List[Tuple[str, str]]] = None, watch: bool = True):
        self.sink = sink or LoggingSink()
        self.locator = locator or DemanglerLocator()
        self.environment = environment or {}
        self.argument_rewrites = argument_rewrites or []
        self.watch = watch
        self._databases: Dict[str, CompilationDatabase] = {}
        self._lock = threading.Lock()

    def __contains__(self, location: str) -> bool:
        return os.path.abspath(location) in self._databases

    def __len__(self) -> int:
        return len(self._databases)

    def get(self, location: str) -> Optional[CompilationDatabase]:
        return self._databases.get(os.path.abspath(location))

    def open_or_get(self, location: str) -> CompilationDatabase:
        location = os.path.abspath(location)
        with self._lock:
            database = self._databases.get(location)
            if database is not None:
                return database

            database = CompilationDatabase(location, self.load(location), registry=self)
            database.pipeline = CompilationPipeline(
                database,
                self.locator,
                sink=self.sink,
                environment=self.environment,
                argument_rewrites=self.argument_rewrites,
            )
            if self.watch:
                database.watch()
            self._databases[location] = database
            return database

    def load(self, location: str) -> Dict[str, CompileCommand]:
        self.sink.append_line(f"Loading Compilation Database from: {location}")
        return CompilationDatabase.load(location)

    def retire(self, database: CompilationDatabase):
        with self._lock:
            if self._databases.get(database.location) is database:
                del self._databases[database.location]
        database.dispose()

    def close_all(self):
        with self._lock:
            databases, self._databases = list(self._databases.values()), {}
        for database in databases:
            database.dispose()
