"""Advisory locking of the report stream.

Several prober instances may append to the same output file. The lock is
taken right before a report is written and released right after, on every
exit path.
"""

from __future__ import annotations

import fcntl
import io
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TextIO

logger = logging.getLogger(__name__)


def _descriptor(stream: TextIO) -> int | None:
    try:
        return stream.fileno()
    except (AttributeError, io.UnsupportedOperation, OSError):
        return None


@contextmanager
def locked_output(stream: TextIO) -> Iterator[TextIO]:
    """Hold an exclusive ``flock`` on ``stream`` while the block runs.

    Streams without a file descriptor (for example ``io.StringIO``) are
    yielded unlocked. Streams whose descriptor does not support locking
    (pipes on some platforms) are also written unlocked.
    """
    fd = _descriptor(stream)
    locked = False
    if fd is not None:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            locked = True
        except OSError as exc:
            logger.debug("Output lock unavailable: %s", exc)

    try:
        yield stream
        stream.flush()
    finally:
        if locked:
            fcntl.flock(fd, fcntl.LOCK_UN)


def emit(stream: TextIO, text: str) -> None:
    """Write a complete report under the output lock."""
    with locked_output(stream) as out:
        out.write(text)
