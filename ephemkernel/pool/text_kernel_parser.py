"""
Parser for the data blocks of text kernels.

Only text between a ``\\begindata`` marker and the next ``\\begintext``
marker is data. Assignments take the forms::

    NAME  = value
    NAME  = ( value, value ... )
    NAME += ( value ... )

Values are numbers (Fortran ``D`` exponents accepted), quoted strings
(``''`` inside a string is a literal quote) or ``@`` calendar dates, which
become seconds past J2000 without leap seconds, as parsed by SPICE's
``tparse``.
"""

import re
from dataclasses import dataclass
from typing import Iterator, List, Tuple, Union

import spiceypy

from ..exceptions import KernelFormatError

BEGIN_DATA = "\\begindata"
BEGIN_TEXT = "\\begintext"

_TOKEN = re.compile(
    r"""\s*(?:
        (?P<string>'(?:[^'\n]|'')*')
      | (?P<op>\+=|=|\(|\)|,)
      | (?P<date>@[^\s,()]+)
      | (?P<word>(?:[^\s=,()'+@]|\+(?!=))+)
    )""",
    re.VERBOSE,
)


@dataclass
class Assignment:
    """One ``NAME = values`` statement."""
    name: str
    kind: str
    values: List[Union[float, str]]
    append: bool = False


def data_blocks(text: str) -> Iterator[str]:
    """Yield the text of every data block."""
    in_data = False
    block: List[str] = []
    for line in text.splitlines():
        marker = line.strip()
        if marker.startswith(BEGIN_DATA):
            in_data = True
            continue
        if marker.startswith(BEGIN_TEXT):
            if in_data and block:
                yield "\n".join(block)
            in_data = False
            block = []
            continue
        if in_data:
            block.append(line)
    if in_data and block:
        yield "\n".join(block)


def _tokenize(block: str, source: str) -> List[Tuple[str, str]]:
    tokens = []
    pos = 0
    while pos < len(block):
        if block[pos:].strip() == "":
            break
        match = _TOKEN.match(block, pos)
        if match is None or match.end() == pos:
            raise KernelFormatError(f"{source}: cannot parse text near {block[pos:pos + 30]!r}")
        kind = match.lastgroup
        tokens.append((kind, match.group(kind)))
        pos = match.end()
    return tokens


def parse_number(word: str) -> float:
    return float(word.replace("D", "E").replace("d", "e"))


def parse_date(word: str) -> float:
    """Seconds past J2000 for an ``@`` calendar date, leap seconds ignored."""
    text = word.lstrip("@")
    try:
        seconds, error = spiceypy.tparse(text)
    except spiceypy.utils.exceptions.SpiceyError as e:
        raise KernelFormatError(f"Unrecognized calendar date {word!r}: {e}") from e
    if error:
        raise KernelFormatError(f"Unrecognized calendar date {word!r}: {error}")
    return seconds


def _value(kind: str, text: str, source: str) -> Union[float, str]:
    if kind == "string":
        return text[1:-1].replace("''", "'")
    if kind == "date":
        return parse_date(text)
    try:
        return parse_number(text)
    except ValueError:
        raise KernelFormatError(f"{source}: {text!r} is neither a number nor a quoted string")


def parse_text_kernel(text: str, source: str = "<text kernel>") -> List[Assignment]:
    """
    Parse every assignment in the data blocks of ``text``.

    Raises:
        KernelFormatError: On malformed assignments or mixed value kinds.
    """
    assignments: List[Assignment] = []
    for block in data_blocks(text):
        tokens = _tokenize(block, source)
        i = 0
        while i < len(tokens):
            kind, name = tokens[i]
            if kind != "word":
                raise KernelFormatError(f"{source}: expected a variable name, got {name!r}")
            if i + 1 >= len(tokens) or tokens[i + 1][0] != "op" or tokens[i + 1][1] not in ("=", "+="):
                raise KernelFormatError(f"{source}: expected '=' or '+=' after {name}")
            append = tokens[i + 1][1] == "+="
            i += 2
            if i >= len(tokens):
                raise KernelFormatError(f"{source}: missing value for {name}")

            raw: List[Tuple[str, str]] = []
            if tokens[i] == ("op", "("):
                i += 1
                while i < len(tokens) and tokens[i] != ("op", ")"):
                    if tokens[i] != ("op", ","):
                        raw.append(tokens[i])
                    i += 1
                if i >= len(tokens):
                    raise KernelFormatError(f"{source}: unterminated value list for {name}")
                i += 1
            else:
                raw.append(tokens[i])
                i += 1

            if not raw:
                raise KernelFormatError(f"{source}: empty value list for {name}")
            if any(k == "op" for k, _ in raw):
                raise KernelFormatError(f"{source}: unexpected operator in values of {name}")
            textual = [k == "string" for k, _ in raw]
            if any(textual) and not all(textual):
                raise KernelFormatError(f"{source}: {name} mixes strings and numbers")

            values = [_value(k, t, source) for k, t in raw]
            assignments.append(Assignment(name, "C" if all(textual) else "N", values, append))
    return assignments
