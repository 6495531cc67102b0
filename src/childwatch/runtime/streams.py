"""Pipe streams connected to a redirected child process.

childwatch runtime module

This module provides:
- PipeReader: buffers a child's stdout/stderr through a pump task so that
  availability probes never block and data captured before exit stays
  readable after exit
- PipeWriter: the write side connected to the child's stdin
- PipeBundle: the three optional pipes owned by one Process

Key design points:
- The pump drains the OS pipe continuously (the child never blocks on a full
  pipe while nobody reads), bounded by pipe_buffer_limit with backpressure
- Closing the write side is independent of the two read sides and final
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from collections.abc import AsyncIterator
from dataclasses import dataclass

from ..config import get_config

__all__ = [
    "UNBOUNDED",
    "PipeReader",
    "PipeWriter",
    "PipeBundle",
]

logger = logging.getLogger(__name__)

# Buffer limit that disables backpressure
UNBOUNDED = sys.maxsize


class PipeReader:
    """Readable byte stream fed from a child's stdout or stderr.

    Example:
        reader = PipeReader(process.stdout, name="stdout")

        if reader.available:
            data = reader.read_available()

        async for line in reader:
            handle(line)
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        *,
        name: str = "stdout",
        limit: int | None = None,
        chunk_size: int | None = None,
    ) -> None:
        config = get_config()
        self.name = name
        self._reader = reader
        self._limit = limit if limit is not None else config.pipe_buffer_limit
        self._chunk_size = chunk_size if chunk_size is not None else config.read_chunk
        self._buffer = bytearray()
        self._eof = False
        self._closed = False
        self._data_ready = asyncio.Event()
        self._space = asyncio.Event()
        self._space.set()
        self._eof_reached = asyncio.Event()
        self._pump_task = asyncio.create_task(self._pump(), name=f"childwatch-pipe-{name}")

    async def _pump(self) -> None:
        """Move bytes from the OS pipe into the local buffer until EOF."""
        try:
            while True:
                await self._space.wait()
                chunk = await self._reader.read(self._chunk_size)
                if not chunk:
                    break
                self._buffer.extend(chunk)
                if len(self._buffer) >= self._limit:
                    # Backpressure: resume once the owner consumes data
                    self._space.clear()
                self._data_ready.set()
        except OSError as e:
            logger.debug(f"Pipe {self.name} read failed: {e}")
        finally:
            self._eof = True
            self._data_ready.set()
            self._eof_reached.set()

    @property
    def available(self) -> int:
        """Number of buffered bytes that can be read without waiting."""
        return len(self._buffer)

    @property
    def closed(self) -> bool:
        return self._closed

    def is_available(self) -> bool:
        return len(self._buffer) > 0

    def at_eof(self) -> bool:
        """True once the pipe reached EOF and every buffered byte was read."""
        return self._eof and not self._buffer

    def _consume(self, n: int) -> bytes:
        data = bytes(self._buffer[:n])
        del self._buffer[:n]
        if len(self._buffer) < self._limit:
            self._space.set()
        if not self._buffer and not self._eof:
            self._data_ready.clear()
        return data

    async def _wait_for_data(self) -> None:
        while not self._buffer and not self._eof:
            self._data_ready.clear()
            await self._data_ready.wait()

    def read_available(self) -> bytes:
        """Return every buffered byte without waiting (possibly b"")."""
        return self._consume(len(self._buffer))

    async def read(self, n: int = -1) -> bytes:
        """Read up to n bytes, or everything until EOF when n < 0.

        Returns b"" only at EOF.
        """
        if n == 0:
            return b""
        if n < 0:
            while not self._eof:
                # Keep the pump running while collecting everything
                self._space.set()
                self._data_ready.clear()
                await self._data_ready.wait()
            return self._consume(len(self._buffer))

        await self._wait_for_data()
        return self._consume(min(n, len(self._buffer)))

    async def readline(self) -> bytes:
        """Read one line including the trailing newline.

        At EOF the remaining partial line is returned; b"" means EOF. A line
        longer than the buffer limit is returned in limit-sized pieces.
        """
        while True:
            idx = self._buffer.find(b"\n")
            if idx >= 0:
                return self._consume(idx + 1)
            if self._eof or len(self._buffer) >= self._limit:
                return self._consume(len(self._buffer))
            self._data_ready.clear()
            await self._data_ready.wait()

    async def wait_eof(self) -> None:
        """Wait until the pump has seen EOF (buffered data may remain)."""
        await self._eof_reached.wait()

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iter_lines()

    async def _iter_lines(self) -> AsyncIterator[bytes]:
        while True:
            line = await self.readline()
            if not line:
                return
            yield line

    def close(self) -> None:
        """Stop pumping. Bytes already buffered stay readable."""
        if self._closed:
            return
        self._closed = True
        if not self._pump_task.done():
            self._pump_task.cancel()


class PipeWriter:
    """Writable byte stream connected to a child's stdin."""

    def __init__(self, writer: asyncio.StreamWriter, *, name: str = "stdin") -> None:
        self.name = name
        self._writer = writer
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def write(self, data: bytes) -> None:
        """Write data and wait until the transport accepted it.

        Raises:
            ValueError: If the stream was already closed
            BrokenPipeError / ConnectionResetError: If the child closed stdin
        """
        if self._closed:
            raise ValueError(f"write to closed pipe {self.name}")
        self._writer.write(data)
        await self._writer.drain()

    def close(self) -> None:
        """Close the pipe so the child sees end-of-input. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        logger.debug(f"Pipe {self.name} closed")

    async def aclose(self) -> None:
        """Close the pipe and wait for the transport to finish flushing."""
        self.close()
        with contextlib.suppress(BrokenPipeError, ConnectionResetError):
            await self._writer.wait_closed()


@dataclass
class PipeBundle:
    """The redirected pipes of one child process.

    Attributes:
        stdout: Child's stdout, read by the owner (None if unavailable)
        stderr: Child's stderr, read by the owner (None if unavailable)
        stdin: Child's stdin, written by the owner (None if unavailable or closed)
    """

    stdout: PipeReader | None = None
    stderr: PipeReader | None = None
    stdin: PipeWriter | None = None

    def close_output(self) -> bool:
        """Close and drop the stdin writer.

        Returns:
            True if a stream was closed, False if it was already absent
        """
        if self.stdin is None:
            return False
        self.stdin.close()
        self.stdin = None
        return True

    async def wait_drained(self) -> None:
        """Wait for both read sides to reach EOF."""
        for reader in (self.stdout, self.stderr):
            if reader is not None:
                await reader.wait_eof()

    def close(self) -> None:
        """Release every pipe. Buffered read data stays readable."""
        self.close_output()
        for reader in (self.stdout, self.stderr):
            if reader is not None:
                reader.close()
