"""
Source preprocessing and indentation-based block extraction.

Indentation is the only block delimiter in the dialect. A block belongs to
the header line above it and consists of the following lines that start with
one indentation unit (four spaces or a tab).
"""

import re
from typing import List, Tuple

INDENT_UNITS = ("    ", "\t")

_COMMENT = re.compile(r"(?<!\\)#")


def preprocess(source: str) -> List[str]:
    """Split source into lines, dropping comments and blank lines.

    Truncation happens at the first ``#`` not preceded by a backslash. String
    literals are not recognised, so a ``#`` inside quotes also starts a
    comment unless escaped as ``\\#``.
    """
    lines = []
    for raw in source.splitlines():
        match = _COMMENT.search(raw)
        if match:
            raw = raw[: match.start()]
        line = raw.replace("\\#", "#").rstrip()
        if line:
            lines.append(line)
    return lines


def is_blank(line: str) -> bool:
    return not line.strip()


def extract_block(lines: List[str], start: int) -> Tuple[List[str], int]:
    """Collect the body of the header at ``start - 1``.

    Returns:
        The body with one indentation unit removed from each line, and the
        number of lines consumed (blank lines are consumed but not returned).
    """
    block = []
    index = start
    while index < len(lines):
        line = lines[index]
        if is_blank(line):
            index += 1
            continue
        unit = next((u for u in INDENT_UNITS if line.startswith(u)), None)
        if unit is None:
            break
        block.append(line[len(unit):])
        index += 1
    return block, index - start
