import asyncio
import io

import pytest

from around.errors import ColumnStoreError, InputError, SearchIndexError, UploadError
from around.ingest import Attachment, parse_coordinate
from conftest import BUCKET


def attachment(data=b'fake-image', size=None):
    return Attachment(stream=io.BytesIO(data), filename='a.png', content_type='image/png', size=size)


@pytest.mark.asyncio
async def test_ingest_writes_all_stores_under_one_id(stores):
    post = await stores.ingestor().ingest('john', 'hello', '37.0', '-120.0', attachment())

    assert post.id
    assert post.url.endswith(post.id)
    assert (BUCKET, post.id) in stores.blobs.objects
    assert list(stores.columns.rows) == [post.id]
    assert list(stores.index.docs) == [post.id]

    indexed = stores.index.docs[post.id]
    assert indexed.user == 'john'
    assert indexed.url == post.url

    fields = stores.columns.rows[post.id]['fields']
    assert fields[('post', 'user')] == 'john'
    assert fields[('post', 'message')] == 'hello'


@pytest.mark.asyncio
async def test_author_comes_from_caller_not_message(stores):
    post = await stores.ingestor().ingest('alice', 'user: mallory', '1', '2', attachment())
    assert post.user == 'alice'


@pytest.mark.asyncio
async def test_missing_attachment_rejected_before_any_write(stores):
    issued = []

    def id_factory():
        issued.append('id')
        return 'never-used'

    with pytest.raises(InputError):
        await stores.ingestor(id_factory=id_factory).ingest('john', 'hello', '37', '-120', None)

    assert issued == []
    assert stores.blobs.objects == {}
    assert stores.columns.rows == {}
    assert stores.index.docs == {}


@pytest.mark.asyncio
@pytest.mark.parametrize('lat,lon', [('abc', '-120'), ('37', ''), (None, '1'), ('91', '0'), ('0', '-180.5'), ('nan', '0')])
async def test_bad_coordinates_rejected_before_any_write(stores, lat, lon):
    with pytest.raises(InputError):
        await stores.ingestor().ingest('john', 'hello', lat, lon, attachment())
    assert stores.blobs.objects == {}
    assert stores.columns.rows == {}
    assert stores.index.docs == {}


@pytest.mark.asyncio
async def test_oversized_attachment_rejected(stores):
    with pytest.raises(InputError):
        await stores.ingestor(max_upload_size=4).ingest('john', 'hi', '1', '1', attachment(size=5))
    assert stores.blobs.objects == {}


@pytest.mark.asyncio
async def test_upload_failure_stops_before_other_writes(stores):
    stores.blobs.fail = True
    with pytest.raises(UploadError):
        await stores.ingestor().ingest('john', 'hello', '37', '-120', attachment())
    assert stores.columns.rows == {}
    assert stores.index.docs == {}


@pytest.mark.asyncio
async def test_column_failure_leaves_orphaned_blob_and_skips_index(stores):
    stores.columns.fail = True
    with pytest.raises(ColumnStoreError):
        await stores.ingestor(id_factory=lambda: 'p1').ingest('john', 'hello', '37', '-120', attachment())
    assert (BUCKET, 'p1') in stores.blobs.objects
    assert stores.index.docs == {}


@pytest.mark.asyncio
async def test_index_failure_keeps_earlier_writes(stores):
    stores.index.fail_upsert = True
    with pytest.raises(SearchIndexError):
        await stores.ingestor(id_factory=lambda: 'p2').ingest('john', 'hello', '37', '-120', attachment())
    assert (BUCKET, 'p2') in stores.blobs.objects
    assert 'p2' in stores.columns.rows
    assert stores.index.docs == {}


@pytest.mark.asyncio
async def test_column_write_carries_exact_coordinates(stores):
    lat, lon = 37.123456789012345, -120.00000000000001
    post = await stores.ingestor().ingest('john', 'hi', repr(lat), repr(lon), attachment())
    fields = stores.columns.rows[post.id]['fields']
    assert fields[('location', 'lat')] == lat
    assert fields[('location', 'lon')] == lon


@pytest.mark.asyncio
async def test_concurrent_ingests_do_not_collide(stores):
    ingestor = stores.ingestor()
    first, second = await asyncio.gather(
        ingestor.ingest('john', 'one', '37', '-120', attachment(b'one')),
        ingestor.ingest('jane', 'two', '38', '-121', attachment(b'two')),
    )
    assert first.id != second.id
    assert stores.blobs.objects[(BUCKET, first.id)] == b'one'
    assert stores.blobs.objects[(BUCKET, second.id)] == b'two'
    assert stores.columns.rows[first.id]['fields'][('post', 'message')] == 'one'
    assert stores.columns.rows[second.id]['fields'][('post', 'message')] == 'two'
    assert stores.index.docs[first.id].user == 'john'
    assert stores.index.docs[second.id].user == 'jane'


@pytest.mark.asyncio
async def test_ingested_post_is_found_by_search(stores):
    post = await stores.ingestor().ingest('john', 'hello', '37.0', '-120.0', attachment())
    results = await stores.query_service().search('37.0', '-120.0')
    assert [p.id for p in results] == [post.id]
    assert results[0].url


def test_parse_coordinate_limits():
    assert parse_coordinate('-90', 'lat', 90) == -90.0
    assert parse_coordinate(' 12.5 ', 'lat', 90) == 12.5
    with pytest.raises(InputError):
        parse_coordinate('inf', 'lon', 180)
