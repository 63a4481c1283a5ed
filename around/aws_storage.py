"""
AWS S3 blob storage for post attachments
Uploads the attachment under the post id, opens it for public read and returns its URL
"""

import os
import asyncio
import logging
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from typing import BinaryIO, List, Optional
from functools import wraps
from .errors import DependencyError, UploadError

logger = logging.getLogger(__name__)

# AWS Configuration from environment
AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID")
AWS_SECRET_ACCESS_KEY = os.getenv("AWS_SECRET_ACCESS_KEY")
AWS_S3_REGION = os.getenv("AWS_S3_REGION") or os.getenv("AWS_REGION", "us-east-1")
# Support both S3_BUCKET (preferred) and legacy AWS_S3_BUCKET
S3_BUCKET = os.getenv("S3_BUCKET") or os.getenv("AWS_S3_BUCKET")
S3_ENDPOINT_URL = os.getenv("S3_ENDPOINT_URL")
S3_PUBLIC_BASE_URL = os.getenv("S3_PUBLIC_BASE_URL")

def async_wrapper(func):
    """Wrapper to make sync boto3 calls async"""
    @wraps(func)
    async def wrapper(*args, **kwargs):
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, lambda: func(*args, **kwargs))
    return wrapper

def create_s3_client():
    """Build the process-wide S3 client"""
    return boto3.client(
        's3',
        aws_access_key_id=AWS_ACCESS_KEY_ID,
        aws_secret_access_key=AWS_SECRET_ACCESS_KEY,
        region_name=AWS_S3_REGION,
        endpoint_url=S3_ENDPOINT_URL,
    )

class S3BlobStore:
    """Stores attachments as public-read S3 objects"""

    def __init__(self, s3_client, region: str = AWS_S3_REGION, public_base_url: Optional[str] = S3_PUBLIC_BASE_URL):
        self.s3_client = s3_client
        self.region = region
        self.public_base_url = public_base_url.rstrip('/') if public_base_url else None

    def get_public_url(self, bucket: str, key: str) -> str:
        """Get public URL for the S3 object"""
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return f"https://{bucket}.s3.{self.region}.amazonaws.com/{key}"

    @async_wrapper
    def upload(self, stream: BinaryIO, bucket: str, object_name: str, content_type: Optional[str] = None) -> str:
        """Stream the attachment into bucket/object_name and return its public URL.

        The bucket must already exist. Every failure, including the ACL grant,
        is reported as UploadError; nothing is retried here.
        """
        extra = {'ContentType': content_type} if content_type else {}
        try:
            self.s3_client.head_bucket(Bucket=bucket)
            self.s3_client.put_object(Bucket=bucket, Key=object_name, Body=stream, **extra)
            self.s3_client.put_object_acl(Bucket=bucket, Key=object_name, ACL='public-read')
        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 upload of {object_name} to {bucket} failed: {e}")
            raise UploadError('Failed to save post') from e

        url = self.get_public_url(bucket, object_name)
        logger.info(f"Post attachment is saved to S3: {url}")
        return url

    @async_wrapper
    def list_keys(self, bucket: str) -> List[str]:
        """List every object key in the bucket"""
        keys = []
        try:
            paginator = self.s3_client.get_paginator('list_objects_v2')
            for page in paginator.paginate(Bucket=bucket):
                keys.extend(obj['Key'] for obj in page.get('Contents', []))
        except (ClientError, BotoCoreError) as e:
            raise DependencyError(f'Failed to list bucket {bucket}') from e
        return keys
