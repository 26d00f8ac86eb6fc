"""
Output destinations.

Results go either to standard output, which is flushed but never closed, or
to a file named by --output-file, which is opened for the duration of the
render and closed on every exit path.
"""
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union


class OutputSink:
    """Writes text (UTF-8 encoded) and raw bytes to a binary stream."""

    def __init__(self, stream: BinaryIO, encoding: str = "utf-8"):
        self.stream = stream
        self.encoding = encoding

    def write(self, text: str) -> None:
        self.stream.write(text.encode(self.encoding))

    def write_line(self, text: str = "") -> None:
        self.write(text + "\n")

    def write_bytes(self, data: bytes) -> None:
        self.stream.write(data)

    def flush(self) -> None:
        self.stream.flush()


@contextmanager
def open_output(path: Optional[Union[str, Path]] = None) -> Iterator[OutputSink]:
    """
    Open the output destination.

    Args:
        path: File to write; standard output when None

    Yields:
        Sink for the rendered output
    """
    if path is None:
        sys.stdout.flush()
        sink = OutputSink(sys.stdout.buffer)
        try:
            yield sink
        finally:
            sink.flush()
        return

    with open(path, "wb") as f:
        yield OutputSink(f)
