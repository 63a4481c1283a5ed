"""
Wide-column storage of post fields in DynamoDB
One item per post: the partition key is the post id and every column family is a map attribute
"""

import os
import time
import logging
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from typing import Dict, Tuple, Union
from .aws_storage import async_wrapper, AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY
from .errors import ColumnStoreError
from .schemas.posts import Post

logger = logging.getLogger(__name__)

DYNAMODB_TABLE = os.getenv('DYNAMODB_TABLE', 'post')
DYNAMODB_REGION = os.getenv('AWS_REGION', 'us-east-1')
DYNAMODB_ENDPOINT_URL = os.getenv('DYNAMODB_ENDPOINT_URL')

Cell = Union[str, float, int, bytes]
Fields = Dict[Tuple[str, str], Cell]

def create_dynamodb_client():
    """Build the process-wide DynamoDB client"""
    return boto3.client(
        'dynamodb',
        aws_access_key_id=AWS_ACCESS_KEY_ID,
        aws_secret_access_key=AWS_SECRET_ACCESS_KEY,
        region_name=DYNAMODB_REGION,
        endpoint_url=DYNAMODB_ENDPOINT_URL,
    )

def now_micros() -> int:
    """Cell timestamp in microseconds since the epoch"""
    return time.time_ns() // 1000

def encode_cell(value: Cell) -> str:
    # repr() of a float is the shortest text that parses back to the same float
    if isinstance(value, bytes):
        return value.decode('utf-8')
    if isinstance(value, float):
        return repr(value)
    return str(value)

def post_fields(post: Post) -> Fields:
    return {
        ('post', 'user'): post.user,
        ('post', 'message'): post.message,
        ('location', 'lat'): post.location.lat,
        ('location', 'lon'): post.location.lon,
    }

class DynamoColumnStore:
    def __init__(self, client, table: str = DYNAMODB_TABLE):
        self.client = client
        self.table = table

    def build_item(self, row_key: str, fields: Fields, timestamp: int) -> dict:
        families: Dict[str, dict] = {}
        for (family, column), value in fields.items():
            families.setdefault(family, {})[column] = {'S': encode_cell(value)}
        item = {'id': {'S': row_key}, 'ts': {'N': str(timestamp)}}
        for family, columns in families.items():
            item[family] = {'M': columns}
        return item

    @async_wrapper
    def write_fields(self, row_key: str, fields: Fields, timestamp: int) -> None:
        """Write every field of one row as a single atomic put"""
        item = self.build_item(row_key, fields, timestamp)
        try:
            self.client.put_item(TableName=self.table, Item=item)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"DynamoDB write of row {row_key} failed: {e}")
            raise ColumnStoreError('Failed to save post') from e
        logger.info(f"Post is saved to DynamoDB: {row_key}")

    @async_wrapper
    def read_fields(self, row_key: str) -> Fields:
        """Read a row back as (family, column) -> text"""
        try:
            res = self.client.get_item(TableName=self.table, Key={'id': {'S': row_key}})
        except (ClientError, BotoCoreError) as e:
            raise ColumnStoreError('Failed to read post') from e
        item = res.get('Item') or {}
        fields: Fields = {}
        for family, attr in item.items():
            if 'M' not in attr:
                continue
            for column, cell in attr['M'].items():
                fields[(family, column)] = cell.get('S', '')
        return fields
