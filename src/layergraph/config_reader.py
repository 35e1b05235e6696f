"""Reader for "name = value" configuration text."""

import os
import re
from typing import Iterator, List, Tuple, Union

from .errors import ConfigSyntaxError

_LINE_RE = re.compile(r"^([^=\s]+)\s*=\s*(.*)$")


def _strip_comment(line: str) -> str:
    in_quote = False
    escaped = False
    for i, ch in enumerate(line):
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == '"':
            in_quote = not in_quote
        elif ch == "#" and not in_quote:
            return line[:i]
    return line


def _unquote(value: str, line_number: int) -> str:
    if not value.startswith('"'):
        return value
    if len(value) < 2 or not value.endswith('"') or value.endswith('\\"'):
        raise ConfigSyntaxError("unterminated quoted value", line_number)
    return value[1:-1].replace('\\"', '"')


def iter_config(text: str) -> Iterator[Tuple[str, str]]:
    """
    Yield (name, value) pairs from configuration text, in order.

    Each non-blank line holds ``name = value``; ``#`` starts a comment unless
    it is inside a double-quoted value.
    """
    for line_number, raw in enumerate(text.splitlines(), start=1):
        line = _strip_comment(raw).strip()
        if not line:
            continue
        match = _LINE_RE.match(line)
        if not match:
            raise ConfigSyntaxError(f"expected name = value, got {line!r}", line_number)
        yield match.group(1), _unquote(match.group(2).strip(), line_number)


def parse_config(text: str) -> List[Tuple[str, str]]:
    """Parse configuration text into a list of (name, value) pairs."""
    return list(iter_config(text))


def read_config(path: Union[str, os.PathLike]) -> List[Tuple[str, str]]:
    """Read a configuration file into a list of (name, value) pairs."""
    with open(path, "r") as f:
        return parse_config(f.read())
