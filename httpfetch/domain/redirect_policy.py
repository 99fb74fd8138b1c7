"""
Bounded redirect following.

A redirect is followed only while the counter is below the ceiling; the
response that arrives once the ceiling is reached is classified like any
other response, so redirect loops end with a status-code outcome.
"""

from typing import Optional

from httpfetch.core.config import settings
from httpfetch.core.exceptions import UrlValidationError
from httpfetch.core.logging import get_logger
from httpfetch.domain.models import Request, ResponseMetadata
from httpfetch.utils.url_parser import resolve_location

logger = get_logger(__name__)

DEFAULT_MAX_REDIRECTS = 10


class RedirectPolicy:
    """Decides whether a response relocates the request, and rewrites it."""

    def __init__(self, max_redirects: int = DEFAULT_MAX_REDIRECTS) -> None:
        if max_redirects < 0:
            raise ValueError("max_redirects must not be negative")
        self.max_redirects = max_redirects
        self.count = 0

    @classmethod
    def from_settings(cls) -> "RedirectPolicy":
        return cls(max_redirects=settings.max_redirects)

    @property
    def exhausted(self) -> bool:
        return self.count >= self.max_redirects

    def should_follow(
        self, metadata: ResponseMetadata, base_url: Optional[str] = None
    ) -> bool:
        """
        Return True when the response is a redirect and budget remains.

        With ``base_url`` the Location is also resolved against it; a
        location the client cannot request (bad port, non-http scheme)
        is not followed.
        """
        if not metadata.is_redirect:
            return False
        if base_url is not None:
            try:
                resolve_location(base_url, metadata.location)
            except UrlValidationError as exc:
                logger.debug("Not following redirect: %s", exc.message)
                return False
        if self.exhausted:
            logger.debug(
                "Redirect limit reached (%d), classifying status %d as final",
                self.max_redirects,
                metadata.status_code,
            )
            return False
        return True

    def follow(self, request: Request, metadata: ResponseMetadata) -> Request:
        """
        Take a redirect: bump the counter and retarget the request in place.

        Args:
            request: The request that produced ``metadata``.
            metadata: A redirect response accepted by ``should_follow``.

        Returns:
            The same request object, now pointing at the new location.
        """
        new_url = resolve_location(request.url, metadata.location)
        self.count += 1
        logger.debug(
            "Redirect %d/%d: %s -> %s",
            self.count,
            self.max_redirects,
            request.url,
            new_url,
        )
        request.url = new_url
        request.redirects = self.count
        return request

    def reset(self) -> None:
        self.count = 0
