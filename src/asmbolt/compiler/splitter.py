import re
from typing import List, Sequence

QUOTES = ("'", '"')
RE_NEEDS_QUOTING = re.compile(r"[\s'\"\\]")


def split_command(command: str) -> List[str]:
    """
    Splits a compile command string into an argument vector.

    Whitespace outside quotes separates tokens. ' and " open a quote context
    that only the same character closes. A backslash makes the next character
    literal, inside quotes as well as outside of them, so "a\\"b" is a"b.
    An unterminated quote runs to the end of the string. Empty tokens,
    including a bare '' or "", are dropped.
    """
    tokens: List[str] = []
    current: List[str] = []
    quote_char = None
    escape_pending = False

    for ch in command:
        if escape_pending:
            current.append(ch)
            escape_pending = False
        elif ch == "\\":
            escape_pending = True
        elif ch in QUOTES and quote_char is None:
            quote_char = ch
        elif ch == quote_char:
            quote_char = None
        elif ch.isspace() and quote_char is None:
            if current:
                tokens.append("".join(current))
            current = []
        else:
            current.append(ch)

    if current:
        tokens.append("".join(current))
    return tokens


def join_command(arguments: Sequence[str]) -> str:
    """Inverse of split_command: quotes only the tokens that need it."""
    parts = []
    for arg in arguments:
        if arg and not RE_NEEDS_QUOTING.search(arg):
            parts.append(arg)
        else:
            escaped = arg.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'"{escaped}"')
    return " ".join(parts)
