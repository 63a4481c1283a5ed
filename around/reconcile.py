"""
Report attachments that never made it into the search index.

Ingestion uploads the attachment first and does not roll it back when a later
write fails, so the bucket can hold objects with no post behind them. This
module only reports them; it does not delete anything.

    python -m around.reconcile --bucket post-images
"""

import argparse
import asyncio
import logging
from typing import List
from .aws_storage import S3BlobStore, create_s3_client, S3_BUCKET
from .search_index import PostIndex, create_search_client

logger = logging.getLogger(__name__)


async def find_orphaned_blobs(blob_store, index, bucket: str) -> List[str]:
    """Return the keys in bucket that have no document in the post index"""
    orphans = []
    for key in await blob_store.list_keys(bucket):
        if not await index.exists(key):
            orphans.append(key)
    logger.info(f"Found {len(orphans)} orphaned attachments in {bucket}")
    return orphans


async def _run(bucket: str) -> List[str]:
    client = create_search_client()
    try:
        return await find_orphaned_blobs(S3BlobStore(create_s3_client()), PostIndex(client), bucket)
    finally:
        await client.close()


def main(argv=None):
    parser = argparse.ArgumentParser(description="List attachments with no indexed post")
    parser.add_argument('--bucket', default=S3_BUCKET, help="bucket to scan (defaults to S3_BUCKET)")
    args = parser.parse_args(argv)
    if not args.bucket:
        parser.error('no bucket given and S3_BUCKET is not set')
    logging.basicConfig(level=logging.INFO)
    for key in asyncio.run(_run(args.bucket)):
        print(key)


if __name__ == '__main__':
    main()
