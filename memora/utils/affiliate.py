"""Amazon affiliate link rewriting."""

from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

# Storefronts we accept as amazon.<tld> (plus any subdomain of them)
AMAZON_TLDS = (
    "com", "ca", "com.mx", "com.br", "co.uk", "de", "fr", "it", "es", "nl",
    "se", "pl", "com.be", "com.tr", "ae", "sa", "eg", "in", "co.jp", "sg",
    "com.au",
)
AMAZON_SHORT_HOSTS = ("amzn.to", "amzn.eu", "amzn.asia", "a.co")
AMAZON_HOSTS = tuple(f"amazon.{tld}" for tld in AMAZON_TLDS) + AMAZON_SHORT_HOSTS


def is_amazon_url(url):
    """True only for http(s) URLs on a known Amazon host."""
    if not url or not isinstance(url, str):
        return False
    try:
        parts = urlparse(url)
        host = (parts.hostname or "").lower().rstrip(".")
    except ValueError:
        return False
    if parts.scheme not in ("http", "https"):
        return False
    return any(host == d or host.endswith("." + d) for d in AMAZON_HOSTS)


def add_affiliate_tag(url, tag):
    """Return `url` with our affiliate tag, replacing any existing one.

    Non-Amazon URLs, empty tags and unparseable input come back unchanged.
    """
    if not url or not tag or not is_amazon_url(url):
        return url

    try:
        parts = urlparse(url)
    except ValueError:
        return url

    query = [
        (k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k not in ("tag", "linkCode") and not k.startswith("ref_")
    ]
    query.append(("tag", tag))
    return urlunparse(parts._replace(query=urlencode(query)))
