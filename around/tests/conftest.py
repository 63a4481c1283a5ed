import io
import math
import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from opensearchpy import ConflictError, NotFoundError

# Configure test environment before the package reads it
os.environ.setdefault('JWT_SECRET', 'test-secret')
os.environ.setdefault('S3_BUCKET', 'post-images-test')
os.environ.setdefault('AWS_ACCESS_KEY_ID', 'testing')
os.environ.setdefault('AWS_SECRET_ACCESS_KEY', 'testing')
os.environ.setdefault('AWS_REGION', 'us-east-1')

# Ensure the package root is on sys.path when pytest changes CWD to this tests dir
HERE = Path(__file__).resolve()
PKG_ROOT = HERE.parents[2]
if str(PKG_ROOT) not in sys.path:
    sys.path.insert(0, str(PKG_ROOT))

from around.auth import create_access_token  # noqa: E402
from around.errors import ColumnStoreError, SearchIndexError, UploadError  # noqa: E402
from around.ingest import IngestionOrchestrator  # noqa: E402
from around.search import QueryOrchestrator  # noqa: E402
from around import core  # noqa: E402
from around.main import app  # noqa: E402

BUCKET = 'post-images-test'


def haversine_km(lat1, lon1, lat2, lon2):
    r = 6371.0
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dp = math.radians(lat2 - lat1)
    dl = math.radians(lon2 - lon1)
    a = math.sin(dp / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2) ** 2
    return 2 * r * math.asin(math.sqrt(a))


class FakeBlobStore:
    def __init__(self):
        self.objects = {}
        self.fail = False

    async def upload(self, stream, bucket, object_name, content_type=None):
        if self.fail:
            raise UploadError('Failed to save post')
        self.objects[(bucket, object_name)] = stream.read()
        return f'https://{bucket}.s3.us-east-1.amazonaws.com/{object_name}'

    async def list_keys(self, bucket):
        return [key for (b, key) in self.objects if b == bucket]


class FakeColumnStore:
    def __init__(self):
        self.rows = {}
        self.fail = False

    async def write_fields(self, row_key, fields, timestamp):
        if self.fail:
            raise ColumnStoreError('Failed to save post')
        self.rows[row_key] = {'fields': dict(fields), 'ts': timestamp}


class FakeIndex:
    """In-memory post index with geo distance filtering"""

    def __init__(self):
        self.docs = {}
        self.fail_upsert = False
        self.fail_query = False
        self.queries = []

    async def upsert(self, doc_id, post):
        if self.fail_upsert:
            raise SearchIndexError('Failed to save post')
        stored = post.model_copy(deep=True)
        stored.id = doc_id
        self.docs[doc_id] = stored

    async def exists(self, doc_id):
        return doc_id in self.docs

    async def query_by_distance(self, lat, lon, radius_km):
        self.queries.append((lat, lon, radius_km))
        if self.fail_query:
            raise SearchIndexError('Search failed')
        return [
            doc for doc in self.docs.values()
            if haversine_km(lat, lon, doc.location.lat, doc.location.lon) <= radius_km
        ]


class FakeUserClient:
    """Just the document calls the account code makes on an OpenSearch client"""

    def __init__(self):
        self.docs = {}

    async def create(self, index, id, body, refresh=None):
        if (index, id) in self.docs:
            raise ConflictError(409, 'version_conflict_engine_exception', {})
        self.docs[(index, id)] = dict(body)
        return {'result': 'created'}

    async def get(self, index, id):
        if (index, id) not in self.docs:
            raise NotFoundError(404, 'not_found', {})
        return {'_id': id, '_source': self.docs[(index, id)]}


class Stores:
    def __init__(self):
        self.blobs = FakeBlobStore()
        self.columns = FakeColumnStore()
        self.index = FakeIndex()
        self.users = FakeUserClient()

    def ingestor(self, **kwargs):
        return IngestionOrchestrator(
            blob_store=self.blobs,
            column_store=self.columns,
            index=self.index,
            bucket=BUCKET,
            **kwargs,
        )

    def query_service(self):
        return QueryOrchestrator(index=self.index)


@pytest.fixture
def stores():
    return Stores()


@pytest.fixture
def image():
    return io.BytesIO(b'\x89PNG\r\n\x1a\nfake-image-bytes')


@pytest.fixture
def token():
    return create_access_token({'username': 'john'})


@pytest.fixture
def auth_headers(token):
    return {'Authorization': f'Bearer {token}'}


@pytest_asyncio.fixture
async def client(stores):
    app.dependency_overrides[core.get_ingestor] = lambda: stores.ingestor()
    app.dependency_overrides[core.get_query_service] = lambda: stores.query_service()
    app.dependency_overrides[core.get_search_client] = lambda: stores.users
    async with AsyncClient(transport=ASGITransport(app=app), base_url='http://test') as ac:
        yield ac
    app.dependency_overrides.clear()
