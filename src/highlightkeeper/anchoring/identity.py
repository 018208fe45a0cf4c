"""Document identity: which document an anchor belongs to."""

from __future__ import annotations

from urllib.parse import urlsplit

_DEFAULT_PORTS = {"http": 80, "https": 443}


def _origin(scheme: str, netloc: str) -> str:
    """``scheme://host[:port]`` with case folded, userinfo and default port dropped."""
    hostport = netloc.rpartition("@")[2].lower().rstrip(":")
    # An IPv6 literal without a port leaves "1]" or similar here, never digits
    host, _, port = hostport.rpartition(":")
    if port.isdigit() and int(port) == _DEFAULT_PORTS.get(scheme):
        return f"{scheme}://{host}"
    return f"{scheme}://{hostport}"


def document_identity(url: str) -> str:
    """Normalise *url* into a stable document key.

    Keeps the origin and path; drops the query string, the fragment and a
    trailing slash, so tracking parameters and in-page links do not split
    one document's highlights across keys.  Scheme and host are lowercased,
    and credentials and the scheme's default port are removed, so spellings
    of the same origin share one key.

    Examples:
        "https://example.com/a/?utm_source=x#top" -> "https://example.com/a"
        "HTTPS://user@Example.COM:443/a" -> "https://example.com/a"
        "https://example.com/" -> "https://example.com"
    """
    parts = urlsplit(url.strip())
    path = parts.path.rstrip("/")
    if not parts.scheme:
        return path
    return _origin(parts.scheme.lower(), parts.netloc) + path
