"""
Post ingestion pipeline
Writes one logical post to S3, DynamoDB and OpenSearch, in that order, keyed by a single post id
"""

import os
import math
import time
import uuid
import logging
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Callable, Optional
from .column_store import now_micros, post_fields
from .errors import DependencyError, InputError
from .metrics import INGEST_SECONDS, POSTS_TOTAL
from .schemas.posts import Location, Post

logger = logging.getLogger(__name__)

# Same bound the multipart parser used to keep in memory: 32MB
MAX_UPLOAD_SIZE = int(os.getenv('MAX_UPLOAD_SIZE', str(32 << 20)))


class IngestState(Enum):
    RECEIVED = "received"
    IDENTITY_ASSIGNED = "identity_assigned"
    BLOB_UPLOADED = "blob_uploaded"
    COLUMN_WRITTEN = "column_written"
    INDEXED = "indexed"
    COMPLETE = "complete"
    ABORTED = "aborted"


@dataclass
class Attachment:
    stream: BinaryIO
    filename: Optional[str] = None
    content_type: Optional[str] = None
    size: Optional[int] = None


def new_post_id() -> str:
    return str(uuid.uuid4())


def parse_coordinate(raw, name: str, limit: float) -> float:
    """Parse a form coordinate, rejecting text that is not a finite number within +/-limit"""
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise InputError(f'Invalid {name}')
    if not math.isfinite(value) or abs(value) > limit:
        raise InputError(f'{name} out of range')
    return value


class IngestionOrchestrator:
    """
    Sequences the three store writes for one post.
    The blob upload comes first because its URL is part of the other two records.
    Any failure stops the pipeline where it is; earlier writes are not rolled back,
    so a failure after the upload leaves an orphaned blob (see around.reconcile).
    """

    def __init__(self, blob_store, column_store, index, bucket: str,
                 id_factory: Callable[[], str] = new_post_id,
                 max_upload_size: int = MAX_UPLOAD_SIZE):
        self.blob_store = blob_store
        self.column_store = column_store
        self.index = index
        self.bucket = bucket
        self.id_factory = id_factory
        self.max_upload_size = max_upload_size

    def _transition(self, post_id, state: IngestState):
        logger.info({'msg': 'ingest_state', 'post_id': post_id, 'state': state.value})
        return state

    def _validate(self, username: str, lat, lon, attachment: Optional[Attachment]) -> Location:
        if attachment is None or attachment.stream is None:
            raise InputError('Image is not available')
        if attachment.size is not None and attachment.size > self.max_upload_size:
            raise InputError('Image is too large')
        if not username:
            raise InputError('Missing author')
        return Location(
            lat=parse_coordinate(lat, 'lat', 90),
            lon=parse_coordinate(lon, 'lon', 180),
        )

    async def ingest(self, username: str, message: Optional[str], lat, lon,
                     attachment: Optional[Attachment]) -> Post:
        """Store a new post and return it with its id and attachment URL"""
        self._transition(None, IngestState.RECEIVED)
        try:
            location = self._validate(username, lat, lon, attachment)
        except InputError as e:
            self._transition(None, IngestState.ABORTED)
            POSTS_TOTAL.labels(outcome='rejected').inc()
            logger.warning({'msg': 'ingest_rejected', 'reason': e.detail})
            raise

        post_id = self.id_factory()
        post = Post(id=post_id, user=username, message=message or '', location=location)
        state = self._transition(post_id, IngestState.IDENTITY_ASSIGNED)

        started = time.perf_counter()
        try:
            post.url = await self.blob_store.upload(
                attachment.stream, self.bucket, post_id, attachment.content_type
            )
            state = self._transition(post_id, IngestState.BLOB_UPLOADED)

            await self.column_store.write_fields(post_id, post_fields(post), now_micros())
            state = self._transition(post_id, IngestState.COLUMN_WRITTEN)

            await self.index.upsert(post_id, post)
            state = self._transition(post_id, IngestState.INDEXED)
        except DependencyError:
            POSTS_TOTAL.labels(outcome='failed').inc()
            if state is IngestState.IDENTITY_ASSIGNED:
                logger.error({'msg': 'ingest_failed', 'post_id': post_id, 'after': state.value})
            else:
                logger.error({'msg': 'ingest_failed_orphaned_blob', 'post_id': post_id,
                              'after': state.value, 'url': post.url})
            raise

        INGEST_SECONDS.observe(time.perf_counter() - started)
        POSTS_TOTAL.labels(outcome='created').inc()
        self._transition(post_id, IngestState.COMPLETE)
        return post
