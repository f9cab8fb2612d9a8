"""
Statistics API route handlers.
"""
import logging
from fastapi import APIRouter

from ..models import StatsOut
from ..database import get_statistics

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["statistics"])

@router.get("/stats", response_model=StatsOut)
async def get_api_stats():
    """Get listing statistics over the enabled models."""
    return StatsOut(**get_statistics())
