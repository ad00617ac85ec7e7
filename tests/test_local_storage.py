"""Tests for the filesystem object store."""

import asyncio
import time
from urllib.parse import parse_qs, urlparse

import pytest

from server.exceptions import BadRequestError, InvalidGrantError, ObjectNotFoundError, StoreUnavailableError
from server.storage.local import LocalObjectStore


def _grant_params(url):
    query = parse_qs(urlparse(url).query)
    return int(query['expires'][0]), query['signature'][0], query.get('content_type', [''])[0]


class TestGrants:
    @pytest.mark.asyncio
    async def test_upload_grant_verifies(self, object_store):
        url = await object_store.issue_upload_grant('t-1/a.txt', 'text/plain')
        expires, signature, content_type = _grant_params(url)

        assert content_type == 'text/plain'
        object_store.verify_grant('PUT', 't-1/a.txt', expires, signature, content_type)

    @pytest.mark.asyncio
    async def test_grant_is_bound_to_method_and_type(self, object_store):
        url = await object_store.issue_upload_grant('t-1/a.txt', 'text/plain')
        expires, signature, _ = _grant_params(url)

        with pytest.raises(InvalidGrantError):
            object_store.verify_grant('GET', 't-1/a.txt', expires, signature, 'text/plain')
        with pytest.raises(InvalidGrantError):
            object_store.verify_grant('PUT', 't-1/a.txt', expires, signature, 'image/png')

    @pytest.mark.asyncio
    async def test_expired_grant(self, object_store):
        object_store.download_ttl_seconds = -10
        url = await object_store.issue_download_grant('t-1/a.txt')
        expires, signature, _ = _grant_params(url)

        assert expires < time.time()
        with pytest.raises(InvalidGrantError):
            object_store.verify_grant('GET', 't-1/a.txt', expires, signature)

    def test_secret_required(self, tmp_path):
        with pytest.raises(StoreUnavailableError):
            LocalObjectStore(str(tmp_path), 'http://x', '', 900, 900)


class TestKeys:
    @pytest.mark.asyncio
    @pytest.mark.parametrize('key', ['../escape', 't/../../escape', '/abs', 't//double', '.content-types/x', ''])
    async def test_bad_keys(self, object_store, key):
        with pytest.raises(BadRequestError):
            await object_store.stat(key)


class TestObjects:
    @pytest.mark.asyncio
    async def test_write_stat_read(self, object_store):
        await object_store.write_bytes('t-2/docs/a.txt', b'hello world', 'text/plain')

        stored = await object_store.stat('t-2/docs/a.txt')
        data = await object_store.read_bytes('t-2/docs/a.txt')

        assert stored.size == 11
        assert stored.content_type == 'text/plain'
        assert data == b'hello world'

    @pytest.mark.asyncio
    async def test_stat_missing(self, object_store):
        assert await object_store.stat('t-2/none.txt') is None

    @pytest.mark.asyncio
    async def test_fetch_missing_raises_on_iteration(self, object_store):
        stream = object_store.fetch_stream('t-2/none.txt')

        with pytest.raises(ObjectNotFoundError):
            await stream.__anext__()

    @pytest.mark.asyncio
    async def test_list_is_sorted_and_scoped(self, object_store):
        await object_store.write_bytes('t-3/z.txt', b'z')
        await object_store.write_bytes('t-3/a/b.txt', b'ab')
        await object_store.write_bytes('t-30/other.txt', b'o')

        objects = await object_store.list_by_prefix('t-3/')

        assert [o.key for o in objects] == ['t-3/a/b.txt', 't-3/z.txt']
        assert objects[1].content_type == 'application/octet-stream'

    @pytest.mark.asyncio
    async def test_overwrite_same_key(self, object_store):
        await object_store.write_bytes('t-4/a.txt', b'first version')
        await object_store.write_bytes('t-4/a.txt', b'second')

        assert await object_store.read_bytes('t-4/a.txt') == b'second'

    @pytest.mark.asyncio
    async def test_delete_by_prefix(self, object_store):
        await object_store.write_bytes('t-5/a.txt', b'a')
        await object_store.write_bytes('t-5/sub/b.txt', b'b')
        await object_store.write_bytes('t-50/keep.txt', b'k')

        deleted = await object_store.delete_by_prefix('t-5/')

        assert deleted == 2
        assert await object_store.list_by_prefix('t-5/') == []
        assert not (object_store.root / 't-5').exists()
        assert len(await object_store.list_by_prefix('t-50/')) == 1

    @pytest.mark.asyncio
    async def test_failed_write_leaves_nothing(self, object_store):
        async def broken():
            yield b'partial'
            raise ConnectionResetError('client dropped')

        with pytest.raises(ConnectionResetError):
            await object_store.write_stream('t-6/a.txt', broken())

        assert await object_store.stat('t-6/a.txt') is None
        assert list((object_store.root / '.incoming').iterdir()) == []

    @pytest.mark.asyncio
    async def test_concurrent_writes_land_at_distinct_keys(self, object_store):
        payloads = {f't-7/part-{i}/file-{i}.bin': bytes([65 + i]) * (10 + i * 7) for i in range(8)}

        async def slow_chunks(data):
            for offset in range(0, len(data), 3):
                yield data[offset:offset + 3]
                await asyncio.sleep(0)

        sizes = await asyncio.gather(*(
            object_store.write_stream(key, slow_chunks(data), 'application/octet-stream')
            for key, data in payloads.items()
        ))

        objects = await object_store.list_by_prefix('t-7/')

        assert sizes == [len(data) for data in payloads.values()]
        assert {o.key: o.size for o in objects} == {key: len(data) for key, data in payloads.items()}
        for key, data in payloads.items():
            assert await object_store.read_bytes(key) == data
