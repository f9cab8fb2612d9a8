"""
API route handlers for listings and reports endpoints.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Query, HTTPException, Depends
from fastapi.responses import StreamingResponse
import pandas as pd

from tracker.models import Snapshot, SnapshotEntry

from ..models import ListingOut, ListingsResponse, ReportOut, ReportGroupOut, ReportEntryOut, DiffOut
from ..database import get_listings, get_listing_by_link, get_latest_report, get_latest_diff
from ..config import config

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["listings"])

def get_listing_filters(
    q: Optional[str] = None,
    model: Optional[str] = None,
    status: Optional[str] = Query(None, pattern="^(active|inactive)$"),
    max_price: Optional[int] = None,
) -> dict:
    """Dependency to extract and validate listing filters."""
    return {
        'q': q,
        'model': model,
        'status': status,
        'max_price': max_price,
    }

def entry_out(entry: SnapshotEntry) -> ReportEntryOut:
    return ReportEntryOut(
        price=entry.price, title=entry.title, year=entry.year, kilometers=entry.kilometers,
        horsepower=entry.horsepower, fuel=entry.fuel, gearbox=entry.gearbox,
        color=entry.color, phone=entry.phone, url=entry.url,
    )

def report_out(name: str, snapshot: Snapshot) -> ReportOut:
    return ReportOut(
        name=name,
        title=snapshot.title,
        total=snapshot.total,
        groups=[ReportGroupOut(label=g.label, entries=[entry_out(e) for e in g.entries])
                for g in snapshot.groups],
    )

@router.get("/listings", response_model=ListingsResponse)
async def get_api_listings(
    filters: dict = Depends(get_listing_filters),
    limit: int = Query(config.DEFAULT_API_LIMIT, ge=1, le=config.MAX_API_LIMIT),
    offset: int = Query(0, ge=0)
):
    """Get listings with filtering and pagination."""
    total, items_data = get_listings(filters, limit, offset)
    return ListingsResponse(total=total, items=[ListingOut(**item) for item in items_data])

@router.get("/listings/by-link", response_model=ListingOut)
async def get_api_listing(link: str):
    """Get a specific listing by its link."""
    listing_data = get_listing_by_link(link)
    if not listing_data:
        raise HTTPException(status_code=404, detail="Listing not found")
    return ListingOut(**listing_data)

@router.get("/reports/latest", response_model=ReportOut)
async def get_api_latest_report():
    """The newest archived report, parsed."""
    latest = get_latest_report()
    if latest is None:
        raise HTTPException(status_code=404, detail="No reports yet")
    name, snapshot = latest
    return report_out(name, snapshot)

@router.get("/reports/diff", response_model=DiffOut)
async def get_api_latest_diff():
    """New listings of the newest report; not comparable when only one report exists."""
    result = get_latest_diff()
    if result is None:
        raise HTTPException(status_code=404, detail="No reports yet")
    return DiffOut(
        comparable=result.comparable,
        previous=result.previous_name,
        latest=result.latest_name,
        total=len(result),
        entries=[entry_out(e) for e in result.entries],
    )

@router.get("/export/csv")
async def export_listings_csv(filters: dict = Depends(get_listing_filters)):
    """Export filtered listings as CSV."""
    _, listings_data = get_listings(filters, limit=100000, offset=0)
    if not listings_data:
        # Return empty CSV with headers
        df = pd.DataFrame(columns=['link', 'model', 'title', 'price', 'status'])
    else:
        df = pd.DataFrame(listings_data)

    csv_content = df.to_csv(index=False).encode('utf-8')
    return StreamingResponse(
        iter([csv_content]),
        media_type='text/csv',
        headers={'Content-Disposition': 'attachment; filename="classic_hunt_listings.csv"'}
    )
