import logging
import os
import shutil
import threading
from typing import Dict, Optional

LOG = logging.getLogger("asmbolt.demangler")

DEFAULT_DEMANGLER = "c++filt"

# Checked in this order; the first fragment found in the compiler name is replaced
COMPILER_FRAGMENTS = ("clang++", "clang", "g++", "gcc", "c++", "cc")


class DemanglerLocator:
    """
    Finds the demangler that belongs to a given compiler.

    Toolchains usually ship c++filt next to the compiler, often with the same
    target prefix (aarch64-linux-gnu-g++ / aarch64-linux-gnu-c++filt), so the
    compiler's directory is searched before falling back to PATH at exec time.
    """

    def __init__(self, demangler: str = DEFAULT_DEMANGLER):
        self.demangler = demangler
        self._cache: Dict[str, str] = {}
        self._lock = threading.Lock()

    def locate(self, compiler: str) -> str:
        with self._lock:
            cached = self._cache.get(compiler)
        if cached is not None:
            return cached

        found = self._find(compiler)
        LOG.debug("demangler for %s: %s", compiler, found)
        with self._lock:
            self._cache.setdefault(compiler, found)
            return self._cache[compiler]

    def _find(self, compiler: str) -> str:
        directory, basename = os.path.split(compiler)
        name, ext = os.path.splitext(basename)

        if not directory:
            resolved = shutil.which(compiler)
            search_dir = os.path.dirname(resolved) if resolved else None
        else:
            search_dir = directory

        if search_dir:
            match = self._search_directory(search_dir, self.demangler + ext)
            if match:
                return match

        # Guess from the compiler's own name and hope it exists
        for fragment in COMPILER_FRAGMENTS:
            if fragment in name:
                guess = os.path.join(directory, name.replace(fragment, self.demangler, 1) + ext)
                if os.path.exists(guess):
                    return guess
                break

        return self.demangler

    @staticmethod
    def _search_directory(directory: str, suffix: str) -> Optional[str]:
        try:
            entries = sorted(os.listdir(directory))
        except OSError:
            return None

        if suffix in entries:
            return os.path.abspath(os.path.join(directory, suffix))
        for entry in entries:
            if entry.endswith(suffix):
                return os.path.abspath(os.path.join(directory, entry))
        return None
