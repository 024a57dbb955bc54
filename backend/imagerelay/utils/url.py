import httpx
from imagerelay.core.errors import InvalidUrl

ALLOWED_SCHEMES = {"http", "https"}

def validate_image_url(candidate: str) -> str:
    """
    Check that candidate is an absolute http(s) URL. No network access.
    """
    try:
        parsed = httpx.URL(candidate.strip())
    except (httpx.InvalidURL, TypeError) as e:
        raise InvalidUrl(f"Invalid URL: {e}") from e

    if parsed.scheme not in ALLOWED_SCHEMES:
        raise InvalidUrl("Invalid URL protocol")
    if not parsed.host:
        raise InvalidUrl("Invalid URL: missing host")
    return str(parsed)
