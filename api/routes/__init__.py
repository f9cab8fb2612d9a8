"""
Dashboard routers: the HTML page, the listing/report API and statistics.
"""
from .listings import router as listings_router
from .stats import router as stats_router
from .ui import router as ui_router

__all__ = ["ui_router", "listings_router", "stats_router"]
