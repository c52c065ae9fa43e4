"""Amazon product scraper.

Fetches a product page with browser-like headers and pulls the title,
price and main image out with BeautifulSoup. Amazon moves these elements
around often, so each field walks a list of selectors and takes the first
non-empty match.
"""

import logging
import re

import requests
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 15

HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,"
        "image/webp,image/apng,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Referer": "https://www.google.com/",
    "DNT": "1",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "cross-site",
    "Cache-Control": "max-age=0",
}

TITLE_SELECTORS = [
    "#productTitle",
    "span#productTitle",
    "h1.a-size-large.a-spacing-none",
    "h1#title",
    '[data-feature-name="title"] h1',
    "#dp h1",
]

# (whole, fraction) is tried right after the first selector
PRICE_SELECTORS = [
    ".a-price .a-offscreen",
    "span.a-price span.a-offscreen",
    "#priceblock_ourprice",
    "#priceblock_dealprice",
    "#price_inside_buybox",
    ".a-price-range .a-price .a-offscreen",
    '[data-a-color="price"] .a-offscreen',
]

# (selector, attribute)
IMAGE_SELECTORS = [
    ("#landingImage", "src"),
    ("#landingImage", "data-old-hires"),
    ("#imgBlkFront", "src"),
    (".a-dynamic-image", "src"),
    ("img[data-a-dynamic-image]", "src"),
]

PRICE_RE = re.compile(r"[\d,]+\.?\d*")


class ScrapeError(Exception):
    """Scraping failed; status_code is what the API should answer with."""

    def __init__(self, message, status_code=500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _first_text(soup, selector):
    el = soup.select_one(selector)
    return el.get_text().strip() if el else ""


def extract_title(soup):
    for selector in TITLE_SELECTORS:
        title = _first_text(soup, selector)
        if title:
            return re.sub(r"\s+", " ", title).strip()
    return ""


def extract_price_text(soup):
    text = _first_text(soup, PRICE_SELECTORS[0])
    if text:
        return text

    whole = _first_text(soup, ".a-price-whole")
    if whole:
        fraction = _first_text(soup, ".a-price-fraction")
        return whole + (fraction or "00")

    for selector in PRICE_SELECTORS[1:]:
        text = _first_text(soup, selector)
        if text:
            return text
    return ""


def parse_price_cents(text):
    """'$1,299.99' → 129999. Returns 0 when nothing numeric is found."""
    match = PRICE_RE.search(text or "")
    if not match:
        return 0
    try:
        return int(round(float(match.group(0).replace(",", "")) * 100))
    except ValueError:
        return 0


def extract_image_url(soup):
    url = ""
    for selector, attr in IMAGE_SELECTORS:
        el = soup.select_one(selector)
        if el and el.get(attr):
            url = el.get(attr)
            break

    # Thumbnails carry a size suffix like ._AC_SX300_; drop it for the full image
    if url and "._" in url:
        url = url.split("._")[0] + ".jpg"
    return url


def parse_product_page(html):
    """Return {title, price_cents, image_url} from product page HTML."""
    soup = BeautifulSoup(html, "html.parser")
    return {
        "title": extract_title(soup),
        "price_cents": parse_price_cents(extract_price_text(soup)),
        "image_url": extract_image_url(soup),
    }


def scrape_amazon_product(url):
    """Fetch and parse an Amazon product page.

    Raises ScrapeError with 504 (timeout), 503/404 (upstream status),
    422 (no title found) or 500 (anything else).
    """
    logger.info(f"Fetching Amazon product page: {url}")
    try:
        resp = requests.get(
            url, headers=HEADERS, timeout=REQUEST_TIMEOUT, allow_redirects=True
        )
    except requests.Timeout:
        raise ScrapeError(
            "Request timeout: Amazon took too long to respond. Please try again.", 504
        )
    except requests.RequestException as e:
        logger.error(f"Amazon fetch failed for {url}: {e}")
        raise ScrapeError(
            "Failed to scrape Amazon product data. Please try adding the item manually.",
            500,
        )

    logger.info(f"Amazon responded {resp.status_code} (final URL {resp.url})")
    if resp.status_code == 503:
        raise ScrapeError(
            "Amazon is temporarily unavailable. Please try again in a moment.", 503
        )
    if resp.status_code == 404:
        raise ScrapeError(
            "Product not found. Please check the Amazon link and try again.", 404
        )
    if resp.status_code >= 500:
        raise ScrapeError(
            "Failed to scrape Amazon product data. Please try adding the item manually.",
            500,
        )

    product = parse_product_page(resp.text)
    logger.info(f"Scraped Amazon product: {product}")

    if not product["title"]:
        raise ScrapeError(
            "Could not extract product information from Amazon page. The page "
            "structure may have changed or the link may be invalid.",
            422,
        )
    return product
