from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile
from ..auth import get_current_user
from ..core import get_ingestor, get_query_service
from ..ingest import Attachment, IngestionOrchestrator
from ..search import QueryOrchestrator
from ..schemas.posts import Post
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post('/post')
async def create_post(
    username: str = Depends(get_current_user),
    ingestor: IngestionOrchestrator = Depends(get_ingestor),
    message: str = Form(''),
    lat: Optional[str] = Form(None),
    lon: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
):
    logger.info(f"Received one post request from {username}")
    attachment = None
    if image is not None:
        attachment = Attachment(
            stream=image.file,
            filename=image.filename,
            content_type=image.content_type,
            size=image.size,
        )
    await ingestor.ingest(username, message, lat, lon, attachment)
    return Response(status_code=200)

@router.get('/search', response_model=List[Post])
async def search(
    username: str = Depends(get_current_user),
    service: QueryOrchestrator = Depends(get_query_service),
    lat: Optional[str] = Query(None),
    lon: Optional[str] = Query(None),
    range_km: Optional[str] = Query(None, alias='range'),
):
    return await service.search(lat, lon, range_km)
