"""OpenSearch index of posts, queried by geo distance."""

import os
import logging
from typing import Any, Dict, List
from opensearchpy import AsyncOpenSearch, OpenSearchException, RequestError
from pydantic import ValidationError
from .errors import SearchIndexError
from .schemas.posts import Post

logger = logging.getLogger(__name__)

OPENSEARCH_URL = os.getenv('OPENSEARCH_URL', 'http://localhost:9200')
SEARCH_INDEX = os.getenv('SEARCH_INDEX', 'around')
SEARCH_MAX_RESULTS = int(os.getenv('SEARCH_MAX_RESULTS', '10000'))

# geo_distance needs location typed as geo_point when the index is created
POST_MAPPING = {
    'mappings': {
        'properties': {
            'location': {'type': 'geo_point'},
        }
    }
}

def create_search_client() -> AsyncOpenSearch:
    """Build the process-wide OpenSearch client"""
    return AsyncOpenSearch(hosts=[OPENSEARCH_URL])

async def ensure_index(client, index: str, body: Dict[str, Any]) -> bool:
    """Create the index unless it exists. Returns True when it was created."""
    if await client.indices.exists(index=index):
        return False
    try:
        await client.indices.create(index=index, body=body)
    except RequestError as e:
        if e.error == 'resource_already_exists_exception':
            return False
        raise
    logger.info(f"Created search index {index}")
    return True

def distance_query(lat: float, lon: float, radius_km: float, size: int) -> Dict[str, Any]:
    return {
        'size': size,
        'query': {
            'bool': {
                'filter': {
                    'geo_distance': {
                        'distance': f'{radius_km}km',
                        'location': {'lat': lat, 'lon': lon},
                    }
                }
            }
        },
    }

class PostIndex:
    def __init__(self, client, index: str = SEARCH_INDEX, max_results: int = SEARCH_MAX_RESULTS):
        self.client = client
        self.index = index
        self.max_results = max_results

    async def ensure_index(self) -> bool:
        return await ensure_index(self.client, self.index, POST_MAPPING)

    async def upsert(self, doc_id: str, post: Post) -> None:
        """Index one post and refresh so the next search sees it"""
        try:
            await self.client.index(index=self.index, id=doc_id, body=post.model_dump(), refresh=True)
        except OpenSearchException as e:
            logger.error(f"Indexing post {doc_id} failed: {e}")
            raise SearchIndexError('Failed to save post') from e
        logger.info(f"Post is saved to index: {doc_id}")

    async def exists(self, doc_id: str) -> bool:
        try:
            return bool(await self.client.exists(index=self.index, id=doc_id))
        except OpenSearchException as e:
            raise SearchIndexError('Search failed') from e

    async def query_by_distance(self, lat: float, lon: float, radius_km: float) -> List[Post]:
        """Posts within radius_km of (lat, lon), in the order the index returns them"""
        body = distance_query(lat, lon, radius_km, self.max_results)
        try:
            res = await self.client.search(index=self.index, body=body)
        except OpenSearchException as e:
            logger.error(f"Geo distance query failed: {e}")
            raise SearchIndexError('Search failed') from e

        hits = res.get('hits', {}).get('hits', [])
        logger.info(f"Query took {res.get('took')} milliseconds, found {len(hits)} posts")
        return self.parse_hits(hits)

    def parse_hits(self, hits: List[Dict[str, Any]]) -> List[Post]:
        posts = []
        for hit in hits:
            try:
                post = Post.model_validate(hit.get('_source') or {})
            except ValidationError as e:
                logger.warning(f"Skipping malformed document {hit.get('_id')}: {e.error_count()} errors")
                continue
            post.id = hit.get('_id')
            posts.append(post)
        return posts
