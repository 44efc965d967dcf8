from fastapi import APIRouter

from app.api.v1.collections import router as collections_router
from app.api.v1.comments import router as comments_router
from app.api.v1.likes import router as likes_router
from app.api.v1.notifications import router as notifications_router
from app.api.v1.posts import router as posts_router
from app.api.v1.shares import router as shares_router

api_router = APIRouter()
api_router.include_router(posts_router)
api_router.include_router(comments_router)
api_router.include_router(likes_router)
api_router.include_router(shares_router)
api_router.include_router(collections_router)
api_router.include_router(notifications_router)
