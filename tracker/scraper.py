"""
Playwright-based scraping logic for avto.net search results.
"""
import asyncio
import logging
import random
import re
from typing import Dict, List, Optional
from urllib.parse import urlencode, urljoin

from .config import CarSearch
from .models import RawListing
from .utils import clean_text

logger = logging.getLogger(__name__)

# Constants
SITE_BASE = "https://www.avto.net"
RESULTS_PATH = "/Ads/results.asp"
ROW_SELECTOR = ".GO-Results-Row"
CHALLENGE_TIMEOUT_S = 120

CHALLENGE_MARKERS = ("Sorry you have been blocked", "challenge-platform")

# Fixed search parameters of the results page
_FIXED_PARAMS = {
    "modelID": "",
    "tip": "katerikoli tip",
    "bencin": "0",
    "starost2": "999",
    "oblika": "0",
    "ccmMin": "0",
    "ccmMax": "99999",
    "kmMin": "0",
    "kmMax": "9999999",
    "kwMin": "0",
    "kwMax": "999",
    "lokacija": "0",
    "EQ1": "1000000000",
    "EQ2": "1000000000",
    "EQ3": "1000000000",
    "EQ4": "100000000",
    "EQ5": "1000000000",
    "EQ6": "1000000000",
    "EQ7": "1000000120",
    "EQ8": "101000000",
    "EQ9": "100000002",
    "EQ10": "100000000",
    "KAT": "1010000000",
    "stran": "",
}

REGISTRATION_RE = re.compile(r"\d{1,2}/\d{4}")
YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")
KM_RE = re.compile(r"([\d.]+)\s*km")
HP_RE = re.compile(r"(\d+)\s*(?:KM|kM|HP|hp|KS|ks|konji)")
GEARBOX_RE = re.compile(r"(?:ročni|avtomatski|polavtomatski|avtomatik)", re.I)
FUEL_RE = re.compile(r"(?:bencin|diesel|dizel|plin|elektr|hybrid|hibrid|LPG|CNG)", re.I)
PHONE_RE = re.compile(
    r"(?:\+386[\s-]?\d[\s-]?\d{3}[\s-]?\d{2}[\s-]?\d{2}"
    r"|0[1-7]\d[\s-]?\d{3}[\s-]?\d{3}"
    r"|0[1-7][\s-]?\d{3}[\s-]?\d{2}[\s-]?\d{2})"
)
EURO_AMOUNT_RE = re.compile(r"[\d.]+\s*€")

# Runs in the page: raw text and a few elements of every result row
_ROWS_JS = """
rows => rows.map(row => ({
  text: row.innerText || "",
  title: row.querySelector(".GO-Results-Naziv")?.innerText || "",
  price: row.querySelector(".GO-Results-Price")?.innerText || "",
  image: row.querySelector("img")?.src || "",
  link: row.querySelector("a")?.href || "",
}))
"""

_SCROLL_JS = """
async () => {
  await new Promise(resolve => {
    let total = 0;
    const step = 400;
    const timer = setInterval(() => {
      const height = document.body.scrollHeight;
      window.scrollBy(0, step);
      total += step;
      if (total >= height) { clearInterval(timer); resolve(); }
    }, 400);
  });
}
"""


def build_search_url(search: CarSearch) -> str:
    """Build the results URL for one tracked model."""
    params = {
        "znamka": search.brand,
        "model": search.model,
        "cenaMin": search.min_price,
        "cenaMax": search.max_price,
        "letnikMin": search.min_year,
        "letnikMax": search.max_year,
    }
    params.update(_FIXED_PARAMS)
    return f"{SITE_BASE}{RESULTS_PATH}?{urlencode(params)}"


def is_challenge_page(content: str) -> bool:
    """Detect an anti-bot interstitial in page HTML."""
    if any(marker in content for marker in CHALLENGE_MARKERS):
        return True
    return "Cloudflare" in content and "challenge" in content


def clean_price_text(price: Optional[str]) -> Optional[str]:
    """
    Normalize the price cell.

    Sale prices ("AKCIJSKA CENA ...") keep the last amount; alternative
    prices ("... oz. ...") keep the first one.
    """
    p = clean_text(price)
    if not p:
        return None
    if p.startswith("AKCIJSKA CENA"):
        amounts = EURO_AMOUNT_RE.findall(p)
        if len(amounts) > 1:
            p = amounts[-1].strip()
    elif "oz." in p:
        amounts = EURO_AMOUNT_RE.findall(p)
        if amounts:
            p = amounts[0].strip()
    return p


def _first_match(pattern: re.Pattern, text: str) -> Optional[str]:
    m = pattern.search(text)
    return m.group(0).strip() if m else None


def parse_row(row: Dict[str, str], base_url: str = SITE_BASE) -> RawListing:
    """Turn the raw text of one result row into a RawListing."""
    text = row.get("text") or ""

    year_m = REGISTRATION_RE.search(text) or YEAR_RE.search(text)
    km_m = KM_RE.search(text)
    hp_m = HP_RE.search(text)

    link = clean_text(row.get("link"))
    if link and not link.startswith("http"):
        link = urljoin(base_url, link)

    return RawListing(
        link=link or None,
        title=clean_text(row.get("title")) or None,
        price=clean_price_text(row.get("price")),
        year=year_m.group(0) if year_m else None,
        kilometers=f"{km_m.group(1)} km" if km_m else None,
        horsepower=f"{hp_m.group(1)} HP" if hp_m else None,
        fuel=_first_match(FUEL_RE, text),
        gearbox=_first_match(GEARBOX_RE, text),
        phone=_first_match(PHONE_RE, text),
        image_url=clean_text(row.get("image")) or None,
    )


async def wait_for_challenge(page, label: str, timeout_s: int = CHALLENGE_TIMEOUT_S) -> bool:
    """
    Wait for a human to solve an anti-bot challenge in the open browser.

    Returns True when the page is (or becomes) usable.
    """
    if not is_challenge_page(await page.content()):
        return True

    logger.warning(">>> Challenge page detected for %s; solve it in the browser window", label)
    for _ in range(timeout_s):
        await asyncio.sleep(1)
        if not is_challenge_page(await page.content()):
            logger.info(">>> Challenge solved, continuing")
            await asyncio.sleep(2)
            return True

    logger.error(">>> Challenge not solved after %d seconds, skipping %s", timeout_s, label)
    return False


async def scrape_model(page, search: CarSearch) -> Optional[List[RawListing]]:
    """
    Scrape every result row for one model.

    Returns None when the page could not be read (challenge not solved),
    an empty list when the search has no results.
    """
    label = search.key.label
    url = build_search_url(search)
    logger.info(">>> Searching for %s", label)

    await page.goto(url, wait_until="load", timeout=60_000)
    await asyncio.sleep(random.uniform(2.0, 3.0))

    if not await wait_for_challenge(page, label):
        return None

    if await page.locator(ROW_SELECTOR).count() == 0:
        logger.info(">>> No listings found for %s", label)
        return []

    # Results are lazy-loaded below the fold
    await page.evaluate(_SCROLL_JS)
    await asyncio.sleep(1.0)

    rows = await page.eval_on_selector_all(ROW_SELECTOR, _ROWS_JS)
    listings = [parse_row(r) for r in rows]
    logger.info(">>> Found %d listings for %s", len(listings), label)
    return listings
