"""Tests for the in-memory blob store and the shared store helpers."""

import asyncio
import os
from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

from filestore.core.errors import NotFound, StorageReadError, StorageWriteError
from filestore.services.memory_store import MemoryBlobStore
from filestore.services.storage import rechunk
from helpers import CHUNK_SIZE, byte_stream, failing_stream, read_all


@pytest.mark.parametrize(
    'size',
    [0, 1, CHUNK_SIZE, CHUNK_SIZE + 1, 5 * CHUNK_SIZE + 17],
)
async def test_round_trip(store: MemoryBlobStore, size: int) -> None:
    """Test that the stored bytes read back exactly, in chunk order."""
    data = os.urandom(size)

    record = await store.put('uploads', 'blob.bin', 'application/octet-stream', byte_stream(data, 700))
    stream = await store.open_read_stream('uploads', record.id)

    assert await read_all(stream) == data


async def test_put_then_get(store: MemoryBlobStore) -> None:
    """Test the record returned by get matches the upload."""
    data = b'x' * (3 * CHUNK_SIZE)

    created = await store.put('uploads', 'x.txt', 'text/plain', byte_stream(data))
    record = await store.get('uploads', created.id)

    assert record.length == len(data)
    assert record.bucket == 'uploads'
    assert record.filename == 'x.txt'
    assert record.content_type == 'text/plain'
    assert record.chunk_size == CHUNK_SIZE
    assert [len(chunk) for chunk in store.chunks['uploads'][ObjectId(record.id)]] == [CHUNK_SIZE] * 3


async def test_delete_removes_record_and_chunks(store: MemoryBlobStore) -> None:
    """Test that a deleted file is gone and deleting it again is NotFound."""
    record = await store.put('uploads', 'a.txt', 'text/plain', byte_stream(b'abc'))

    await store.delete('uploads', record.id)

    with pytest.raises(NotFound):
        await store.get('uploads', record.id)
    with pytest.raises(NotFound):
        await store.delete('uploads', record.id)
    assert store.chunks['uploads'] == {}


@pytest.mark.parametrize('file_id', [str(ObjectId()), 'not-an-object-id', ''])
async def test_unknown_ids_are_not_found(store: MemoryBlobStore, file_id: str) -> None:
    """Test get, open_read_stream and delete on ids that were never created."""
    with pytest.raises(NotFound):
        await store.get('uploads', file_id)
    with pytest.raises(NotFound):
        await store.open_read_stream('uploads', file_id)
    with pytest.raises(NotFound):
        await store.delete('uploads', file_id)


async def test_buckets_are_isolated(store: MemoryBlobStore) -> None:
    """Test that records never show up in another bucket."""
    public = await store.put('uploads', 'a.txt', 'text/plain', byte_stream(b'a'))
    private = await store.put('safe-uploads', 'b.txt', 'text/plain', byte_stream(b'b'))

    assert [record.id for record in await store.list('uploads')] == [public.id]
    assert [record.id for record in await store.list('safe-uploads')] == [private.id]
    with pytest.raises(NotFound):
        await store.get('uploads', private.id)
    with pytest.raises(NotFound):
        await store.delete('safe-uploads', public.id)


async def test_empty_bucket_lists_nothing(store: MemoryBlobStore) -> None:
    """Test that an empty bucket is an empty list, not an error."""
    assert await store.list('uploads') == []


@pytest.mark.parametrize('error', [ConnectionResetError('client went away'), asyncio.CancelledError()])
async def test_failed_source_leaves_nothing(store: MemoryBlobStore, error: BaseException) -> None:
    """Test that an interrupted or cancelled upload leaves neither record nor chunks."""
    with pytest.raises(type(error)):
        await store.put('uploads', 'big.bin', 'application/octet-stream', failing_stream(b'z' * 5000, error=error))

    assert await store.list('uploads') == []
    assert store.chunks['uploads'] == {}


async def test_capacity_exceeded_is_write_error() -> None:
    """Test that running out of capacity fails the upload cleanly."""
    store = MemoryBlobStore(chunk_size=CHUNK_SIZE, capacity_bytes=2 * CHUNK_SIZE)
    kept = await store.put('uploads', 'small.bin', 'application/octet-stream', byte_stream(b's' * CHUNK_SIZE))

    with pytest.raises(StorageWriteError):
        await store.put('uploads', 'big.bin', 'application/octet-stream', byte_stream(b'b' * 3 * CHUNK_SIZE))

    assert [record.id for record in await store.list('uploads')] == [kept.id]
    assert store.stored_bytes() == CHUNK_SIZE


async def test_missing_chunk_is_read_error(store: MemoryBlobStore) -> None:
    """Test that a lost chunk fails the stream instead of truncating silently."""
    record = await store.put('uploads', 'c.bin', 'application/octet-stream', byte_stream(b'c' * 3 * CHUNK_SIZE))
    store.chunks['uploads'][ObjectId(record.id)].pop()

    stream = await store.open_read_stream('uploads', record.id)

    with pytest.raises(StorageReadError):
        await read_all(stream)


async def test_find_latest_is_last_write_wins(store: MemoryBlobStore) -> None:
    """Test that the newest record of a reused name is returned."""
    await store.put('safe-uploads', 'notes.txt', 'text/plain', byte_stream(b'v1'))
    second = await store.put('safe-uploads', 'notes.txt', 'text/plain', byte_stream(b'v2'))

    latest = await store.find_latest('safe-uploads', 'notes.txt')

    assert latest.id == second.id
    assert len(await store.list('safe-uploads')) == 2
    with pytest.raises(NotFound):
        await store.find_latest('uploads', 'notes.txt')


async def test_sweep_orphans_respects_grace_period(store: MemoryBlobStore) -> None:
    """Test that only old chunk sets without a record are removed."""
    record = await store.put('uploads', 'keep.txt', 'text/plain', byte_stream(b'keep'))
    old_orphan = ObjectId.from_datetime(datetime.now(timezone.utc) - timedelta(days=2))
    fresh_orphan = ObjectId()
    store.chunks['uploads'][old_orphan] = [b'old']
    store.chunks['uploads'][fresh_orphan] = [b'in flight']

    removed = await store.sweep_orphans('uploads', timedelta(hours=1))

    assert removed == 1
    assert old_orphan not in store.chunks['uploads']
    assert fresh_orphan in store.chunks['uploads']
    assert ObjectId(record.id) in store.chunks['uploads']


@pytest.mark.parametrize(
    ('pieces', 'expected'),
    [
        ([], []),
        ([b'abc', b'defg', b'h'], [b'abc', b'def', b'gh']),
        ([b'abcdefg'], [b'abc', b'def', b'g']),
        ([b'ab', b'c'], [b'abc']),
    ],
)
async def test_rechunk(pieces: list, expected: list) -> None:
    """Test that arbitrary pieces regroup into fixed-size blocks."""
    async def source():
        for piece in pieces:
            yield piece

    assert [block async for block in rechunk(source(), 3)] == expected
