"""Byte-stream helpers shared by the store tests."""

from typing import AsyncIterator, Final

CHUNK_SIZE: Final = 1024


async def byte_stream(data: bytes, piece: int = 1000) -> AsyncIterator[bytes]:
    """Yield ``data`` in pieces unrelated to the store's chunk size."""
    for start in range(0, len(data), piece):
        yield data[start:start + piece]


async def failing_stream(
    data: bytes, piece: int = 1000, error: BaseException | None = None
) -> AsyncIterator[bytes]:
    """Yield ``data`` and then fail like a client dropping mid-upload.

    Pass ``error`` to fail with something else, e.g. a cancellation.
    """
    async for block in byte_stream(data, piece):
        yield block
    raise error or ConnectionResetError('client went away')


async def read_all(stream: AsyncIterator[bytes]) -> bytes:
    return b''.join([data async for data in stream])
