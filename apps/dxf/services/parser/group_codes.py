"""
Group-code reader: raw DXF text -> ordered (code, value) pairs.

Lines are split on CR, LF and CRLF. Blank lines in code position are
skipped; the value is always the line after the code, so empty string
values keep the stream aligned. Comment pairs (999) are dropped.
"""
import re
from typing import Any, Iterator, NamedTuple

from apps.core.exceptions import ParseError

BINARY_SENTINEL = "AutoCAD Binary DXF"
COMMENT_CODE = 999

_LINE_BREAK = re.compile(r"\r\n|\r|\n")

# (first, last) group code ranges by value type
_FLOAT_RANGES = (
    (10, 59),
    (110, 149),
    (210, 239),
    (460, 469),
    (1010, 1059),
)
_INT_RANGES = (
    (60, 99),
    (160, 179),
    (270, 299),
    (370, 389),
    (400, 409),
    (420, 429),
    (440, 459),
    (1060, 1071),
)


def _in_ranges(code: int, ranges) -> bool:
    return any(first <= code <= last for first, last in ranges)


def cast_value(code: int, value: str) -> Any:
    """Convert a raw value string according to its group code type."""
    if _in_ranges(code, _FLOAT_RANGES):
        return float(value)
    if _in_ranges(code, _INT_RANGES):
        try:
            return int(value)
        except ValueError:
            return int(float(value))
    return value


class GroupCodePair(NamedTuple):
    """One (code, value) pair; line is the 1-based line of the code."""
    code: int
    value: str
    line: int = 0

    @property
    def typed(self) -> Any:
        try:
            return cast_value(self.code, self.value)
        except ValueError:
            raise ParseError(
                f"Invalid value {self.value[:40]!r} for group code {self.code}",
                line=self.line + 1,
            ) from None

    @property
    def is_marker(self) -> bool:
        return self.code == 0


def iter_group_codes(text: str) -> Iterator[GroupCodePair]:
    """Yield GroupCodePairs from DXF text."""
    if text.startswith("\ufeff"):
        text = text[1:]
    if text.lstrip().startswith(BINARY_SENTINEL):
        raise ParseError("Binary DXF is not readable as text", line=1)

    lines = _LINE_BREAK.split(text)
    total = len(lines)
    index = 0

    while index < total:
        raw = lines[index].strip()
        if not raw:
            index += 1
            continue

        line_no = index + 1
        try:
            code = int(raw)
        except ValueError:
            raise ParseError(
                f"Expected integer group code, got {raw[:40]!r}",
                line=line_no,
            ) from None

        if index + 1 >= total:
            raise ParseError(f"Group code {code} has no value line", line=line_no)

        value = lines[index + 1].strip()
        index += 2

        if code == COMMENT_CODE:
            continue
        yield GroupCodePair(code, value, line_no)


def read_group_codes(text: str) -> list[GroupCodePair]:
    """Read the whole stream into a list."""
    return list(iter_group_codes(text))
