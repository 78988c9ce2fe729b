from __future__ import annotations

import asyncio
import logging
import os
import re
from typing import List, Optional

import httpx
from bs4 import BeautifulSoup

log = logging.getLogger(__name__)

try:
    SCRAPE_MAX_CONTENT = int(os.getenv("SCRAPE_MAX_CONTENT", "5000"))
except ValueError:
    SCRAPE_MAX_CONTENT = 5000
try:
    SCRAPE_TIMEOUT_SECS = float(os.getenv("SCRAPE_TIMEOUT_SECS", "10"))
except ValueError:
    SCRAPE_TIMEOUT_SECS = 10.0

RELEVANT_TAGS = ("h1", "h2", "h3", "p")
_URL_RE = re.compile(r"https?://[^\s]+")
_WS_RE = re.compile(r"\s+")


def _truncate(text: str) -> str:
    limit = SCRAPE_MAX_CONTENT
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def extract_urls(text: str) -> List[str]:
    urls = _URL_RE.findall(text or "")
    log.debug("scraper.extract_urls count=%d", len(urls))
    return urls


def extract_relevant_content(html: str) -> str:
    """
    Title, meta description and the first h1/h2/h3/p of a page as one
    whitespace-collapsed line.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    parts: List[str] = []

    if soup.title and soup.title.get_text(strip=True):
        parts.append(f"Title: {soup.title.get_text(' ', strip=True)}")
    meta = soup.find("meta", attrs={"name": "description"})
    if meta and meta.get("content"):
        parts.append(f"Description: {meta['content']}")
    for tag in RELEVANT_TAGS:
        node = soup.find(tag)
        if node is not None:
            text = node.get_text(" ", strip=True)
            if text:
                parts.append(f"{tag.upper()}: {text}")

    content = _truncate(_WS_RE.sub(" ", " ".join(parts)).strip())
    log.debug("scraper.extract content_len=%d", len(content))
    return content


async def scrape_url(url: str, client: Optional[httpx.AsyncClient] = None) -> Optional[str]:
    """Fetch one page and return its relevant text, or None on any fetch failure."""
    log.info("scraper.fetch url=%s", url)
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=SCRAPE_TIMEOUT_SECS, follow_redirects=True)
    try:
        resp = await http.get(url)
        resp.raise_for_status()
        html = resp.text
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        log.error("scraper.fetch failed url=%s err=%s", url, e)
        return None
    finally:
        if owns_client:
            await http.aclose()

    content = extract_relevant_content(html)
    log.debug("scraper.fetch ok url=%s original_len=%d filtered_len=%d", url, len(html), len(content))
    return content


async def scrape_multiple_urls(urls: List[str], client: Optional[httpx.AsyncClient] = None) -> str:
    """Scrape all URLs concurrently and join the results in input order."""
    log.info("scraper.fetch_many count=%d", len(urls))
    if not urls:
        return ""
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=SCRAPE_TIMEOUT_SECS, follow_redirects=True)
    try:
        results = await asyncio.gather(*(scrape_url(u, http) for u in urls))
    finally:
        if owns_client:
            await http.aclose()

    combined = "".join(f"\nContent from {u}:\n{c}\n" for u, c in zip(urls, results) if c)
    if len(combined) > SCRAPE_MAX_CONTENT:
        combined = _truncate(combined)
        log.debug("scraper.fetch_many truncated len=%d", len(combined))
    return combined


async def gather_context(prompt: str, client: Optional[httpx.AsyncClient] = None) -> str:
    """Scraped context for any URLs in the prompt; empty string on failure."""
    urls = extract_urls(prompt)
    if not urls:
        return ""
    try:
        return await scrape_multiple_urls(urls, client)
    except Exception:
        log.exception("scraper.gather_context failed urls=%d", len(urls))
        return ""
