import logging
import os
import re
import signal
import subprocess
import threading
import time
from typing import Dict, List, Optional, Sequence, Tuple

from .commands import CompileCommand
from .demangler import DemanglerLocator
from ..errors import Cancelled, CompilationFailed, NotFound, SpawnError
from ..utils.cancellation import CancellationToken
from ..utils.output import LoggingSink, OutputSink

LOG = logging.getLogger("asmbolt.pipeline")

# Debug info, assembly, written to stdout
ASSEMBLY_FLAGS = ("-g", "-S", "-o", "-")
CHUNK_SIZE = 64 * 1024

RE_LINE_BREAK = re.compile(r"\r?\n")


def strip_directives(asm: str) -> str:
    """
    Drops assembler comment/directive lines (those starting with # or ; after
    indentation). Line structure, including a trailing newline, is kept.
    """
    kept = [
        line for line in RE_LINE_BREAK.split(asm)
        if not line.lstrip().startswith(("#", ";"))
    ]
    return "\n".join(kept)


class _StreamReader(threading.Thread):
    """Drains a pipe in the background so the child never blocks on a full pipe."""

    def __init__(self, stream):
        super().__init__(daemon=True)
        self.stream = stream
        self.chunks: List[bytes] = []

    def run(self):
        try:
            for chunk in iter(lambda: self.stream.read1(CHUNK_SIZE), b""):
                self.chunks.append(chunk)
        except (OSError, ValueError):
            # Pipe torn down while the process was being killed
            pass

    def result(self) -> bytes:
        self.join()
        return b"".join(self.chunks)


class _Process:
    """
    A spawned child with its stderr (and optionally stdout) drained by reader
    threads. Leaving the `with` block kills the child if it is still running and
    closes every pipe.
    """

    def __init__(self, name: str, argv: Sequence[str], stdin, cwd: Optional[str] = None,
                 env: Optional[Dict[str, str]] = None, collect_stdout: bool = False):
        self.name = name
        try:
            self.popen = subprocess.Popen(
                list(argv),
                stdin=stdin,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=cwd,
                env=env,
                # Own process group, so a kill also reaches cc1 / as children
                start_new_session=(os.name == "posix"),
            )
        except OSError as e:
            raise SpawnError(f"cannot start {name} '{argv[0]}': {e}") from e

        self._stderr = _StreamReader(self.popen.stderr)
        self._stderr.start()
        self._stdout = None
        if collect_stdout:
            self._stdout = _StreamReader(self.popen.stdout)
            self._stdout.start()

    def __enter__(self) -> "_Process":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def kill(self):
        if self.popen.poll() is None:
            try:
                if os.name == "posix":
                    os.killpg(self.popen.pid, signal.SIGKILL)
                else:
                    self.popen.kill()
            except ProcessLookupError:
                pass

    def wait(self) -> int:
        return self.popen.wait()

    def stdout_bytes(self) -> bytes:
        return self._stdout.result() if self._stdout else b""

    def stderr_text(self) -> str:
        return self._stderr.result().decode("utf-8", errors="replace")

    def close(self):
        self.kill()
        self.popen.wait()
        self._stderr.join()
        if self._stdout:
            self._stdout.join()
        for stream in (self.popen.stdin, self.popen.stdout, self.popen.stderr):
            if stream is None:
                continue
            try:
                stream.close()
            except OSError:
                # Unflushed stdin of a killed child
                pass


class CompilationPipeline:
    """
    Runs one compile request for a database: compiler -> c++filt -> filtered asm.

    Only one run per database is alive at a time; starting a run cancels the one
    before it.
    """

    def __init__(self, database, locator: DemanglerLocator, sink: Optional[OutputSink] = None,
                 environment: Optional[Dict[str, str]] = None,
                 argument_rewrites: Optional[Sequence[Tuple[str, str]]] = None):
        self.database = database
        self.locator = locator
        self.sink = sink or LoggingSink()
        self.environment = dict(environment or {})
        self.argument_rewrites = dict(argument_rewrites or [])

    def run(self, source_path: str, override_arguments: Optional[Sequence[str]] = None) -> str:
        command = self.database.lookup(source_path)
        if command is None:
            raise NotFound(f"cannot find compilation command for {source_path}")

        token_source = self.database.begin_compilation()
        try:
            start = time.perf_counter()
            asm = self._run_compiler(token_source.token, command, source_path, override_arguments)
            elapsed = time.perf_counter() - start
            self.sink.append_line(f"Compilation succeeded: {len(asm)} bytes, {elapsed:.3f} s")
            return asm
        except Cancelled:
            LOG.info("Compilation of %s cancelled", source_path)
            raise
        except CompilationFailed as e:
            LOG.error("%s", e)
            self.sink.append_line(str(e))
            self.sink.show()
            raise
        finally:
            self.database.end_compilation(token_source)

    def build_invocation(self, command: CompileCommand, source_path: str,
                         override_arguments: Optional[Sequence[str]] = None) -> List[str]:
        arguments = list(override_arguments) if override_arguments else list(command.arguments)
        if not arguments:
            raise CompilationFailed(f"empty compile command for {command.file}")

        args = arguments[1:] + [os.path.abspath(source_path)] + list(ASSEMBLY_FLAGS)
        args = [self.argument_rewrites.get(arg, arg) for arg in args]
        return [arguments[0]] + args

    def _run_compiler(self, token: CancellationToken, command: CompileCommand, source_path: str,
                      override_arguments: Optional[Sequence[str]]) -> str:
        invocation = self.build_invocation(command, source_path, override_arguments)
        demangler_exe = self.locator.locate(invocation[0])

        self.sink.append_line(f"Compiling using: {' '.join(invocation)}")
        self.sink.append_line(f"Demangler: {demangler_exe}")

        cwd = command.directory if os.path.isdir(command.directory) else None
        env = None
        if self.environment:
            env = dict(os.environ)
            env.update(self.environment)

        with _Process("compiler", invocation, stdin=subprocess.DEVNULL, cwd=cwd, env=env) as compiler, \
                _Process("demangler", [demangler_exe], stdin=subprocess.PIPE, collect_stdout=True) as demangler:

            def kill_both():
                compiler.kill()
                demangler.kill()

            unregister = token.register(kill_both)
            try:
                self._relay(token, compiler, demangler)

                code = compiler.wait()
                LOG.debug("compiler exited with %s", code)
                self._report_stderr(compiler)
                token.raise_if_cancelled()
                if code != 0:
                    raise CompilationFailed(f"compilation failed: {invocation[0]} exited with code {code}")

                try:
                    demangler.popen.stdin.close()
                except OSError as e:
                    token.raise_if_cancelled()
                    raise CompilationFailed(f"demangler stopped accepting input: {e}") from e

                code = demangler.wait()
                output = demangler.stdout_bytes()
                self._report_stderr(demangler)
                token.raise_if_cancelled()
                if code != 0:
                    raise CompilationFailed(f"demangling failed: {demangler_exe} exited with code {code}")
            finally:
                unregister()

        return strip_directives(output.decode("utf-8", errors="replace"))

    def _relay(self, token: CancellationToken, compiler: _Process, demangler: _Process):
        source = compiler.popen.stdout
        target = demangler.popen.stdin
        for chunk in iter(lambda: source.read1(CHUNK_SIZE), b""):
            token.raise_if_cancelled()
            try:
                target.write(chunk)
                target.flush()
            except OSError as e:
                token.raise_if_cancelled()
                raise CompilationFailed(f"demangler stopped accepting input: {e}") from e
        token.raise_if_cancelled()

    def _report_stderr(self, process: _Process):
        stderr = process.stderr_text()
        if stderr:
            # Warnings alone do not fail the run
            self.sink.append_line(stderr)
            self.sink.show()
