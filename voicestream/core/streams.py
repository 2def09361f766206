"""
Byte-stream adaptation
======================
Two materializations of an audio byte stream meet here:

- pull-based: an upstream ``ChunkReader`` whose ``await read()`` returns the
  next chunk, or an end marker (``None`` or ``grpc.aio.EOF``);
- push-based: ``AudioStream``, an async iterator the caller drains with
  ``async for``.

Design
------
- One pump task per stream loops "wait for demand → await next chunk →
  forward or close". Each ``__anext__`` grants demand for exactly one chunk,
  so the pump never reads more than one chunk ahead of the consumer.
- End of stream is delivered once; the pump performs no reads after it.
- Closing the stream (``aclose()`` / leaving ``async with``) is the
  cancellation signal: the pump is cancelled and the upstream closed.
- Upstream exceptions are handed to an optional translator and raised from
  the consumer's ``__anext__``.

``pipe()`` is the push→push direction: relay an async byte iterator into a
writable sink without transformation.
"""

import asyncio
import inspect
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Optional,
    Protocol,
    Union,
    runtime_checkable,
)

import grpc.aio

from voicestream.core.logging import get_logger

logger = get_logger(__name__)

_END = object()


@runtime_checkable
class ChunkReader(Protocol):
    async def read(self) -> Any:
        ...


class ByteSink(Protocol):
    def write(self, data: bytes) -> Any:
        ...


ChunkSource = Union[ChunkReader, AsyncIterator[Any]]
ErrorTranslator = Callable[[BaseException], BaseException]


def _is_end(chunk: Any) -> bool:
    return chunk is None or chunk is grpc.aio.EOF


class AudioStream:
    """Push-based, demand-driven view over a pull-based chunk source."""

    def __init__(
        self,
        source: ChunkSource,
        *,
        translate_error: Optional[ErrorTranslator] = None,
        on_close: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> None:
        self._source = source
        self._translate_error = translate_error
        self._on_close = on_close
        self._demand = asyncio.Event()
        self._chunks: asyncio.Queue = asyncio.Queue()
        self._pump_task: Optional[asyncio.Task] = None
        self._finished = False
        self._closed = False
        self.chunks_delivered = 0
        self.bytes_delivered = 0

    # ── Async iterator protocol ────────────────────────────────────────────────

    def __aiter__(self) -> "AudioStream":
        return self

    async def __anext__(self) -> bytes:
        if self._finished or self._closed:
            raise StopAsyncIteration

        if self._pump_task is None:
            self._pump_task = asyncio.create_task(self._pump())

        self._demand.set()
        item = await self._chunks.get()

        if item is _END:
            await self._finish()
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            await self._finish()
            raise item

        self.chunks_delivered += 1
        self.bytes_delivered += len(item)
        return item

    async def __aenter__(self) -> "AudioStream":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    # ── Public API ─────────────────────────────────────────────────────────────

    @property
    def closed(self) -> bool:
        return self._closed

    async def read_all(self) -> bytes:
        """Drain the remaining stream into a single bytes object."""
        buffer = bytearray()
        async with self:
            async for chunk in self:
                buffer.extend(chunk)
        return bytes(buffer)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self._pump_task is not None and not self._pump_task.done():
            self._pump_task.cancel()
            try:
                await self._pump_task
            except asyncio.CancelledError:
                pass
        # wake a consumer already waiting in __anext__
        self._chunks.put_nowait(_END)

        await self._close_source()
        if self._on_close is not None:
            await self._on_close()

        logger.debug(
            "Audio stream closed",
            extra={"chunks": self.chunks_delivered, "bytes": self.bytes_delivered},
        )

    # ── Pump ───────────────────────────────────────────────────────────────────

    async def _pump(self) -> None:
        while True:
            await self._demand.wait()
            self._demand.clear()

            try:
                try:
                    chunk = await self._next_chunk()
                except StopAsyncIteration:
                    chunk = None
                if _is_end(chunk):
                    self._chunks.put_nowait(_END)
                    return
                self._chunks.put_nowait(bytes(chunk))
            except Exception as exc:
                self._chunks.put_nowait(self._translate(exc))
                return

    async def _next_chunk(self) -> Any:
        if isinstance(self._source, ChunkReader):
            return await self._source.read()
        return await self._source.__anext__()

    def _translate(self, exc: BaseException) -> BaseException:
        if self._translate_error is None:
            return exc
        try:
            translated = self._translate_error(exc)
        except Exception:
            logger.exception("Stream error translator failed; surfacing the original error")
            return exc
        if translated is not exc:
            translated.__cause__ = exc
        return translated

    async def _finish(self) -> None:
        self._finished = True
        await self.aclose()

    async def _close_source(self) -> None:
        aclose = getattr(self._source, "aclose", None)
        if aclose is not None:
            await aclose()
            return
        cancel = getattr(self._source, "cancel", None)
        if cancel is not None:
            # grpc.aio calls are cancelled rather than closed
            cancel()


async def pipe(chunks: AsyncIterator[bytes], sink: ByteSink) -> int:
    """Relay every chunk into ``sink`` in order; returns the bytes written."""
    written = 0
    async for chunk in chunks:
        result = sink.write(chunk)
        if inspect.isawaitable(result):
            await result
        written += len(chunk)
    return written
