from fastapi import APIRouter

from app.api.v1.endpoints import (
    # Physical Asset Counting
    counting,
)


# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Physical Asset Counting ====================
api_router.include_router(
    counting.router,
    prefix="/counting",
    tags=["Asset Counting"]
)
