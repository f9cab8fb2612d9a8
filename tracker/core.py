"""
Core scraping orchestration and browser management.
"""
import asyncio
import logging
import os
import random
from datetime import datetime
from typing import Callable, List, Optional

from playwright.async_api import async_playwright

from .config import CarSearch
from .models import RawListing
from .scraper import SITE_BASE, scrape_model, wait_for_challenge
from .utils import now_utc

logger = logging.getLogger(__name__)

PROFILE_DIR_DEFAULT = ".chrome-profile"
SEARCH_DELAY_RANGE = (5.0, 10.0)

BatchHandler = Callable[[CarSearch, List[RawListing], datetime], None]


async def run_scrape(
    searches: List[CarSearch],
    on_batch: BatchHandler,
    headless: bool = False,
    profile_dir: Optional[str] = PROFILE_DIR_DEFAULT,
    cdp_url: Optional[str] = None,
) -> int:
    """
    Scrape every search in order, one page reused for all of them.

    ``on_batch`` is called once per model as soon as its results are in,
    with the listings and the time they were observed. A model that fails
    is logged and skipped; a model whose page returned no rows is left
    untouched so a blank page cannot retire its whole history.

    Returns the number of models handed to ``on_batch``.
    """
    is_headless = bool(headless) or os.getenv("HEADLESS", "").strip().lower() in ("1", "true")
    handled = 0

    async with async_playwright() as p:
        browser = None
        if cdp_url:
            # Attach to a browser the user started themselves
            browser = await p.chromium.connect_over_cdp(cdp_url)
            context = browser.contexts[0] if browser.contexts else await browser.new_context()
            logger.info(">>> Connected over CDP: %s", cdp_url)
        else:
            os.makedirs(profile_dir, exist_ok=True)
            context = await p.chromium.launch_persistent_context(
                profile_dir,
                headless=is_headless,
                args=["--disable-blink-features=AutomationControlled", "--start-maximized"],
                locale="sl-SI",
                viewport=None if not is_headless else {"width": 1280, "height": 900},
            )
            logger.info(">>> Browser profile: %s (headless=%s)", profile_dir, is_headless)

        context.set_default_timeout(30_000)
        context.set_default_navigation_timeout(60_000)
        page = context.pages[0] if context.pages else await context.new_page()

        try:
            # Warm up on the homepage so the session carries cookies
            logger.info(">>> Visiting homepage")
            try:
                await page.goto(SITE_BASE, wait_until="domcontentloaded", timeout=60_000)
            except Exception as e:
                logger.warning(">>> Homepage navigation error: %s", e)
            await asyncio.sleep(random.uniform(3.0, 5.0))

            if not await wait_for_challenge(page, "homepage"):
                raise RuntimeError("Could not pass the homepage challenge")

            logger.info(">>> Scraping %d enabled model(s)", len(searches))
            for i, search in enumerate(searches):
                label = search.key.label
                try:
                    if page.is_closed():
                        page = await context.new_page()
                    batch = await scrape_model(page, search)
                    if batch:
                        on_batch(search, batch, now_utc())
                        handled += 1
                    elif batch is not None:
                        logger.info(">>> Keeping previous state of %s", label)
                except Exception:
                    logger.exception(">>> Error scraping %s", label)

                if i < len(searches) - 1:
                    delay = random.uniform(*SEARCH_DELAY_RANGE)
                    logger.info(">>> Waiting %.1fs before next search", delay)
                    await asyncio.sleep(delay)
        finally:
            if browser is not None:
                await browser.close()
            else:
                await context.close()

    return handled
