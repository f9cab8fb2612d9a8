"""
Web UI route handlers for the human-friendly dashboard.
"""
import logging
from html import escape
from typing import Dict, List

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

from ..database import get_dashboard_groups

logger = logging.getLogger(__name__)
router = APIRouter(tags=["ui"])

PAGE_HEAD = '''<!doctype html>
<html lang="en" class="h-full">
<head>
  <meta charset="utf-8"/>
  <meta name="viewport" content="width=device-width, initial-scale=1"/>
  <title>Classic Hunt</title>
  <script src="https://cdn.tailwindcss.com"></script>
</head>
<body class="h-full bg-slate-50 text-slate-900">
<div class="max-w-7xl mx-auto px-4 py-6">
  <h1 class="text-2xl font-semibold mb-4">Classic Hunt</h1>
'''

PAGE_TAIL = '''</div>
</body></html>'''

def render_listing_card(listing: Dict) -> str:
    """One listing as a card with photo, price and details."""
    link = escape(listing['link'])
    title = escape(listing.get('title') or 'Untitled')
    price = escape(listing.get('price') or 'N/A')

    if listing.get('image_url'):
        photo = (f'<img src="{escape(listing["image_url"])}" class="w-full h-40 object-cover rounded-t-xl" '
                 f'loading="lazy" alt="{title}"/>')
    else:
        photo = '<div class="w-full h-40 bg-slate-100 rounded-t-xl flex items-center justify-center text-slate-400 text-xs">No photo</div>'

    badge = ''
    if listing.get('is_new'):
        badge = '<span class="absolute top-2 left-2 bg-amber-500 text-white text-xs font-bold px-2 py-0.5 rounded">NEW</span>'

    details = [listing.get(k) for k in ('year', 'kilometers', 'horsepower', 'fuel', 'gearbox', 'color')]
    details_html = ' · '.join(escape(d) for d in details if d)
    phone = f'<div class="text-xs text-slate-500 mt-1">{escape(listing["phone"])}</div>' if listing.get('phone') else ''

    return f'''<a href="{link}" target="_blank" class="relative block bg-white rounded-xl shadow border hover:shadow-md transition-shadow">
{photo}{badge}
<div class="p-3">
<div class="text-lg font-semibold text-blue-600">{price}</div>
<div class="font-medium">{title}</div>
<div class="text-xs text-slate-500 mt-1">{details_html}</div>
{phone}
</div>
</a>'''

def render_dashboard(groups: List[Dict], new_days: int) -> str:
    """Full dashboard page: one section per model, cheapest first."""
    html_parts = [PAGE_HEAD]
    total = sum(len(g['listings']) for g in groups)
    html_parts.append(f'<div class="text-sm text-slate-600 mb-6"><strong>{total}</strong> active listings; '
                      f'NEW marks listings first seen in the last {new_days} days</div>')

    for group in groups:
        listings = group['listings']
        html_parts.append('<section class="mb-10">')
        html_parts.append(f'<h2 class="text-lg font-medium border-b pb-2 mb-4">{escape(group["label"])} '
                          f'<span class="text-slate-400 text-sm">({len(listings)})</span></h2>')
        if not listings:
            html_parts.append('<div class="text-slate-400 text-sm">No active listings</div>')
        else:
            html_parts.append('<div class="grid grid-cols-1 sm:grid-cols-2 lg:grid-cols-4 gap-4">')
            html_parts.extend(render_listing_card(l) for l in listings)
            html_parts.append('</div>')
        html_parts.append('</section>')

    html_parts.append(PAGE_TAIL)
    return '\n'.join(html_parts)

@router.get('/', response_class=HTMLResponse)
async def index():
    """Dashboard of active listings per tracked model."""
    groups, new_days = get_dashboard_groups()
    return HTMLResponse(render_dashboard(groups, new_days))
