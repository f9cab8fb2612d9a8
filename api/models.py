"""
Pydantic models for API request/response serialization.
"""
from typing import Optional, List, Dict
from pydantic import BaseModel

class ListingOut(BaseModel):
    """Output model for listing data."""
    link: str
    model: str
    title: Optional[str] = None
    price: Optional[str] = None
    price_value: Optional[int] = None
    year: Optional[str] = None
    kilometers: Optional[str] = None
    horsepower: Optional[str] = None
    fuel: Optional[str] = None
    gearbox: Optional[str] = None
    color: Optional[str] = None
    phone: Optional[str] = None
    image_url: Optional[str] = None
    status: str
    first_seen: str
    last_update: str
    is_new: bool = False

class ListingsResponse(BaseModel):
    """Response model for paginated listings."""
    total: int
    items: List[ListingOut]

class StatsOut(BaseModel):
    """Model for statistics data."""
    total_listings: int
    active_listings: int
    new_listings: int
    min_price: Optional[int]
    max_price: Optional[int]
    avg_price: Optional[float]
    by_model: Dict[str, int]

class ReportEntryOut(BaseModel):
    """One listing line of a report."""
    price: str
    title: str
    year: str
    kilometers: str
    horsepower: str
    fuel: str
    gearbox: str
    color: str
    phone: str
    url: str

class ReportGroupOut(BaseModel):
    label: str
    entries: List[ReportEntryOut]

class ReportOut(BaseModel):
    """A parsed archived report."""
    name: str
    title: str
    total: int
    groups: List[ReportGroupOut]

class DiffOut(BaseModel):
    """New listings between the two newest reports."""
    comparable: bool
    previous: Optional[str] = None
    latest: Optional[str] = None
    total: int = 0
    entries: List[ReportEntryOut] = []
