"""Client for the external cache-invalidation (revalidation) endpoint.

After a publish the rendering tier is told which site changed so its
cached pages are regenerated on the next request.
"""

import httpx
import structlog

from sitekit.config import Settings, get_settings
from sitekit.utils.exceptions import ExternalServiceError

logger = structlog.get_logger()


class RevalidationClient:
    """Posts ``{"siteId", "secret"}`` to the configured revalidation URL."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize revalidation client.

        Args:
            settings: Platform settings (URL, secret, timeout).
            transport: Optional httpx transport (tests use MockTransport).
        """
        self.settings = settings or get_settings()
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.settings.revalidate_url)

    def revalidate(self, site_id: str) -> None:
        """Ask the rendering tier to drop a site's cached pages.

        Raises:
            ExternalServiceError: If the endpoint is unreachable or rejects the call.
        """
        payload = {"siteId": site_id, "secret": self.settings.revalidate_secret}

        try:
            with httpx.Client(
                timeout=self.settings.revalidate_timeout,
                transport=self._transport,
            ) as client:
                response = client.post(self.settings.revalidate_url, json=payload)
        except httpx.TimeoutException as e:
            raise ExternalServiceError(
                "revalidation",
                message="Revalidation request timed out",
                original_error=type(e).__name__,
            ) from e
        except httpx.HTTPError as e:
            raise ExternalServiceError(
                "revalidation",
                message=f"Revalidation request failed: {e}",
                original_error=type(e).__name__,
            ) from e

        if not response.is_success:
            raise ExternalServiceError(
                "revalidation",
                message=f"Revalidation endpoint returned {response.status_code}",
                original_error=response.text[:200],
            )

    def notify(self, site_id: str) -> bool:
        """Revalidate a site, logging instead of raising on failure.

        Stale pages expire on their own within the cache window, so a failed
        signal never fails the caller.

        Returns:
            True if the endpoint accepted the signal.
        """
        if not self.enabled:
            logger.debug("Revalidation not configured, skipping", site_id=site_id)
            return False

        try:
            self.revalidate(site_id)
        except ExternalServiceError as e:
            logger.warning("Revalidation failed", site_id=site_id, error=e.message)
            return False

        logger.info("Site revalidated", site_id=site_id)
        return True
