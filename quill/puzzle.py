"""Depth-reading puzzle helpers for Quill.

This module backs the ``quill increases`` command, the worked example from the
site's Advent of Code walkthrough. It reads a puzzle input file line by line,
parses every line as an integer and counts how often a reading is larger than
the one before it.

Failures are not recovered from: an unreadable file raises ``OSError`` and a
malformed line raises ``PuzzleInputError``. Callers decide how to report them.

Key functions:
- read_lines: Open a text file and return a LineReader over its lines.
- LineReader: Lazy line iterator that owns and closes its file handle.
- parse_integers: Lazily convert lines to integers.
- count_increases: Count strict increases over a sequence of integers.
- count_file_increases: Convenience wrapper running all three over a path.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import IO

logger = logging.getLogger(__name__)


class PuzzleInputError(ValueError):
    """Raised when a puzzle input line is not a valid integer.

    Attributes:
        line_number: 1-based number of the offending line.
        line: The offending line, terminator stripped.
    """

    def __init__(self, line_number: int, line: str):
        self.line_number = line_number
        self.line = line
        super().__init__(f"line {line_number}: not an integer: {line!r}")


class LineReader:
    """Lazy iterator over the lines of an open text file.

    The handle is closed once the lines run out, on ``close()``, or when the
    reader is used as a context manager and the block exits, whether or not
    any line was read.
    """

    def __init__(self, handle: IO[str]):
        self._handle = handle

    def __iter__(self) -> LineReader:
        return self

    def __next__(self) -> str:
        if self._handle.closed:
            raise StopIteration
        line = self._handle.readline()
        if not line:
            self.close()
            raise StopIteration
        return line[:-1] if line.endswith("\n") else line

    def close(self) -> None:
        self._handle.close()

    @property
    def closed(self) -> bool:
        return self._handle.closed

    def __enter__(self) -> LineReader:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def read_lines(path: Path | str) -> LineReader:
    """Open a text file and return a lazy iterator over its lines.

    The file is opened immediately so a missing or unreadable file fails here
    rather than on first iteration. Universal newlines are used, so ``\\n``,
    ``\\r\\n`` and ``\\r`` all end a line. Bytes that are not valid UTF-8
    come through as lone surrogates, so they surface as a bad line instead of
    a decode error several lines early.

    Args:
        path: Path to the puzzle input.

    Returns:
        LineReader yielding lines with the trailing terminator removed. A last
        line without a terminator is yielded once; a file ending on a
        terminator does not produce a trailing empty line.

    Raises:
        OSError: If the file cannot be opened.
    """
    handle = open(path, encoding="utf-8", errors="surrogateescape")
    logger.debug("Opened puzzle input %s", path)
    return LineReader(handle)


def parse_integers(lines: Iterable[str]) -> Iterator[int]:
    """Parse each line as an integer.

    Args:
        lines: Lines of text.

    Yields:
        One integer per line.

    Raises:
        PuzzleInputError: On the first line that ``int()`` rejects.
    """
    for number, line in enumerate(lines, start=1):
        try:
            yield int(line)
        except ValueError:
            raise PuzzleInputError(number, line) from None


def count_increases(values: Iterable[int]) -> int:
    """Count how many values are strictly greater than the value before them.

    The counter starts below zero and the first value always brings it to
    zero, so an empty sequence yields -1.

    Examples:
        >>> count_increases([1, 2, 3])
        2

        >>> count_increases([])
        -1
    """
    count = -1
    previous: int | None = None
    for value in values:
        if previous is None or value > previous:
            count += 1
        previous = value
    return count


def count_file_increases(path: Path | str) -> int:
    """Read, parse and count increases for the puzzle input at ``path``."""
    with read_lines(path) as lines:
        result = count_increases(parse_integers(lines))
    logger.info("Counted %d increases in %s", result, path)
    return result
