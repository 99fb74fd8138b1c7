"""
URL parsing utilities.

Turns user input and ``Location`` headers into canonical absolute request
URLs, and derives an output file name from a request target:
  - example.com/a            →  http://example.com/a
  - HTTP://Example.COM:80/   →  http://example.com/
  - /next relative to http://h/a/b  →  http://h/next
"""

from urllib.parse import urljoin, urlsplit, urlunsplit

from httpfetch.core.exceptions import UrlValidationError

SUPPORTED_SCHEMES = ("http", "https")

DEFAULT_PORTS = {"http": 80, "https": 443}

DEFAULT_FILENAME = "index.html"


def parse_target_url(url: str) -> str:
    """
    Normalise a URL into the form used as a request target.

    Transformations applied:
      1. Default the scheme to http when none is given
      2. Lowercase scheme and hostname
      3. Remove default ports (80 for http, 443 for https)
      4. Remove fragment (never sent to the server)
      5. Use "/" for an empty path

    The query string is kept byte-for-byte; its order matters to servers.

    Args:
        url: The raw URL string.

    Returns:
        The normalised URL string.

    Raises:
        UrlValidationError: If the URL has no host, an invalid port,
            or a scheme other than http/https.
    """
    raw = url.strip()
    if not raw:
        raise UrlValidationError(url, "Empty URL")

    if "://" not in raw:
        raw = f"http://{raw}"

    try:
        parsed = urlsplit(raw)
    except ValueError as exc:
        raise UrlValidationError(url, str(exc)) from exc

    scheme = parsed.scheme.lower()
    if scheme not in SUPPORTED_SCHEMES:
        raise UrlValidationError(url, f"Unsupported scheme '{parsed.scheme}'")

    hostname = (parsed.hostname or "").lower()
    if not hostname:
        raise UrlValidationError(url, "Missing host")

    try:
        port = parsed.port
    except ValueError as exc:
        raise UrlValidationError(url, f"Invalid port: {exc}") from exc

    if port == DEFAULT_PORTS[scheme]:
        port = None

    # IPv6 literals keep their brackets in the netloc
    host = f"[{hostname}]" if ":" in hostname else hostname
    netloc = f"{host}:{port}" if port else host

    if parsed.username is not None:
        userinfo = parsed.username
        if parsed.password is not None:
            userinfo = f"{userinfo}:{parsed.password}"
        netloc = f"{userinfo}@{netloc}"

    path = parsed.path or "/"

    return urlunsplit((scheme, netloc, path, parsed.query, ""))


def resolve_location(base: str, location: str) -> str:
    """Resolve a Location header value against the URL that returned it."""
    try:
        joined = urljoin(base, location.strip())
    except ValueError as exc:
        raise UrlValidationError(location, str(exc)) from exc
    return parse_target_url(joined)


def request_target(url: str) -> str:
    """Return the origin-form request target (path plus query) of a URL."""
    parsed = urlsplit(url)
    target = parsed.path or "/"
    if parsed.query:
        target = f"{target}?{parsed.query}"
    return target


def output_filename(target: str) -> str:
    """
    Derive a local file name from a request target.

    The target is cut at the first ``;`` or ``&``, trailing slashes are
    stripped and the last path segment is used. An empty result falls
    back to ``index.html``.

    Args:
        target: Request target, e.g. ``/pub/file.tar.gz``.

    Returns:
        A bare file name with no directory component.
    """
    end = len(target)
    for separator in (";", "&"):
        index = target.find(separator)
        if index != -1:
            end = min(end, index)

    name = target[:end].rstrip("/").rsplit("/", 1)[-1]
    return name or DEFAULT_FILENAME
