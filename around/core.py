import os
import logging
from prometheus_client import start_http_server
from .aws_storage import S3BlobStore, create_s3_client, S3_BUCKET
from .column_store import DynamoColumnStore, create_dynamodb_client
from .crud import ensure_user_index
from .errors import DependencyError
from .ingest import IngestionOrchestrator
from .search import QueryOrchestrator
from .search_index import PostIndex, create_search_client

logger = logging.getLogger(__name__)

METRICS_PORT = int(os.getenv('METRICS_PORT', '8001'))

# Long-lived store clients, built once at startup and shared by every request
S3 = None
DYNAMODB = None
SEARCH = None

def init_metrics(port: int = METRICS_PORT):
    """Initialize Prometheus metrics server"""
    try:
        start_http_server(port)
        logger.info(f"Prometheus metrics server started on port {port}")
    except Exception as e:
        logger.warning(f'Prometheus start failed: {e}')

def aws_startup():
    """Create the S3 and DynamoDB clients. Failure here stops the process."""
    global S3, DYNAMODB
    if not S3_BUCKET:
        raise RuntimeError('S3_BUCKET must be set')
    S3 = create_s3_client()
    DYNAMODB = create_dynamodb_client()
    logger.info("AWS clients created")

async def search_startup():
    """Connect to OpenSearch and make sure both indices exist. Failure here stops the process."""
    global SEARCH
    SEARCH = create_search_client()
    await PostIndex(SEARCH).ensure_index()
    await ensure_user_index(SEARCH)
    logger.info("OpenSearch indices ready")

async def shutdown_connections():
    """Gracefully shutdown all connections"""
    global SEARCH
    logger.info("Shutting down connections...")
    if SEARCH is not None:
        try:
            await SEARCH.close()
            logger.info("OpenSearch connection closed")
        except Exception as e:
            logger.error(f"Error closing OpenSearch connection: {e}")
        SEARCH = None

def get_search_client():
    if SEARCH is None:
        raise DependencyError('Search backend is not available')
    return SEARCH

def get_post_index() -> PostIndex:
    return PostIndex(get_search_client())

def get_ingestor() -> IngestionOrchestrator:
    if S3 is None or DYNAMODB is None:
        raise DependencyError('Storage backend is not available')
    return IngestionOrchestrator(
        blob_store=S3BlobStore(S3),
        column_store=DynamoColumnStore(DYNAMODB),
        index=get_post_index(),
        bucket=S3_BUCKET,
    )

def get_query_service() -> QueryOrchestrator:
    return QueryOrchestrator(index=get_post_index())
