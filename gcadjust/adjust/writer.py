# File: gcadjust/adjust/writer.py
# Location: gcadjust/gcadjust/adjust/writer.py
"""
Chunked, optionally compressed report writer.

Lines are buffered and written in chunks of ``chunk_size`` bytes. Three
output modes:

- plain text (``<prefix>.adjusted``)
- gzip, single worker (``<prefix>.adjusted.gz``); the gzip header carries no
  timestamp, so identical input produces identical bytes
- bgzip with several workers: plain text goes to a temporary file next to
  the output, which ``bgzip -@ <workers>`` then compresses into place

The writer is a context manager. Leaving the block always closes the handle
and removes the temporary file; any I/O failure surfaces as
``WriteFailureError``.
"""

from __future__ import annotations

import gzip
import logging
import os
import subprocess
import tempfile

from gcadjust.errors import WriteFailureError
from gcadjust.utils import check_external_tools, run_command, smart_open

logger = logging.getLogger("gcadjust")

ADJUSTED_SUFFIX = ".adjusted"
GZIP_SUFFIX = ".gz"


def output_path(prefix: str, compress: bool) -> str:
    """Report path for an output prefix."""
    return prefix + ADJUSTED_SUFFIX + (GZIP_SUFFIX if compress else "")


class ReportWriter:
    """
    Buffered writer for one report file.

    Parameters
    ----------
    path : str
        Final output path.
    compress : bool
        Compress the output (gzip or bgzip).
    threads : int
        Compression workers. More than one selects bgzip when it is on PATH.
    chunk_size : int
        Bytes buffered before a write is issued.
    compresslevel : int
        gzip compression level for the single-worker mode.
    """

    def __init__(
        self,
        path: str,
        compress: bool = False,
        threads: int = 1,
        chunk_size: int = 1 << 20,
        compresslevel: int = 6,
    ) -> None:
        self.path = path
        self.compress = compress
        self.threads = max(1, int(threads))
        self.chunk_size = chunk_size
        self.compresslevel = compresslevel
        self.mode = self._select_mode()
        self._handle = None
        self._raw = None
        self._tmp_path: str | None = None
        self._buffer: list[bytes] = []
        self._buffered = 0
        self.bytes_written = 0

    def _select_mode(self) -> str:
        if not self.compress:
            return "plain"
        if self.threads > 1 and check_external_tools(["bgzip"]):
            return "bgzip"
        if self.threads > 1:
            logger.debug("bgzip not found in PATH; compressing with a single gzip worker")
        return "gzip"

    def __enter__(self) -> ReportWriter:
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
        else:
            self._abort()

    def open(self) -> None:
        """Open the output file (or the temporary file in bgzip mode)."""
        try:
            if self.mode == "gzip":
                self._raw = open(self.path, "wb")
                self._handle = gzip.GzipFile(
                    filename=os.path.basename(self.path),
                    mode="wb",
                    compresslevel=self.compresslevel,
                    fileobj=self._raw,
                    mtime=0,
                )
            elif self.mode == "bgzip":
                out_dir = os.path.dirname(os.path.abspath(self.path))
                fd, self._tmp_path = tempfile.mkstemp(suffix=ADJUSTED_SUFFIX, dir=out_dir)
                os.close(fd)
                self._handle = smart_open(self._tmp_path, "wb")
            else:
                self._handle = smart_open(self.path, "wb")
        except OSError as e:
            self._abort()
            raise WriteFailureError(f"Cannot open {self.path} for writing: {e}") from e
        logger.debug(f"Opened {self.path} for writing ({self.mode})")

    def write(self, text: str) -> None:
        """Buffer ``text``; flush once ``chunk_size`` bytes are pending."""
        if self._handle is None:
            raise WriteFailureError(f"Writer for {self.path} is not open")
        data = text.encode("utf-8")
        self._buffer.append(data)
        self._buffered += len(data)
        if self._buffered >= self.chunk_size:
            self.flush()

    def flush(self) -> None:
        """Write all buffered text to the file."""
        if not self._buffer:
            return
        data = b"".join(self._buffer)
        self._buffer.clear()
        self._buffered = 0
        try:
            self._handle.write(data)
        except OSError as e:
            raise WriteFailureError(f"Write to {self.path} failed: {e}") from e
        self.bytes_written += len(data)

    def close(self) -> None:
        """Flush, close, and (in bgzip mode) compress into the final path."""
        try:
            self.flush()
            self._close_handles()
            if self.mode == "bgzip":
                bgzip_cmd = ["bgzip", "-@", str(self.threads), "-c", self._tmp_path]
                logger.debug(f"bgzip compressing to: {self.path}")
                run_command(bgzip_cmd, output_file=self.path)
        except OSError as e:
            raise WriteFailureError(f"Closing {self.path} failed: {e}") from e
        except subprocess.CalledProcessError as e:
            raise WriteFailureError(f"bgzip failed for {self.path}: {e.stderr or e.output}") from e
        finally:
            self._abort()

    def _close_handles(self) -> None:
        handle, raw = self._handle, self._raw
        self._handle = None
        self._raw = None
        try:
            if handle is not None:
                handle.close()
        finally:
            if raw is not None:
                raw.close()

    def _abort(self) -> None:
        """Release the handles and the temporary file without raising."""
        self._buffer.clear()
        self._buffered = 0
        try:
            self._close_handles()
        except OSError as e:
            logger.debug(f"Ignoring error while closing {self.path}: {e}")
        if self._tmp_path and os.path.exists(self._tmp_path):
            os.remove(self._tmp_path)
        self._tmp_path = None
