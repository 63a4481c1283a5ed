from fastapi import APIRouter
from .posts import router as posts_router
from .users import router as users_router

router = APIRouter()
router.include_router(posts_router, tags=['posts'])
router.include_router(users_router, tags=['users'])
