import os
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .splitter import split_command

# Flags that only make sense for the build's own object-file compile
DROPPED_FLAGS = ("-c", "-g")


@dataclass(frozen=True)
class CompileCommand:
    """
    One resolved entry of the compilation database.
    arguments[0] is the compiler; -c, -g, -o <file> and the source itself are gone.
    """
    directory: str
    file: str
    arguments: Tuple[str, ...]


def reconstruct_arguments(command: Optional[str], arguments: Optional[Sequence[str]], directory: str) -> List[str]:
    """
    Turns a database entry's `command` string or `arguments` list into an
    argument vector that can be executed directly.
    """
    if command:
        args = split_command(command)
    else:
        args = list(arguments or [])

    if not args:
        return []

    # The recorded executable is relative to the entry's working directory
    args[0] = os.path.join(directory, args[0])

    result = [args[0]]
    skip_next = False
    for arg in args[1:]:
        if skip_next:
            skip_next = False
            continue
        if arg == "-o":
            skip_next = True
            continue
        if arg in DROPPED_FLAGS:
            continue
        result.append(arg)
    return result
