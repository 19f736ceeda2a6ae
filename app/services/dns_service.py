from __future__ import annotations

import logging
from typing import Any

import httpx

from app.core.config import (
    BASE_DOMAIN,
    CLOUDFLARE_API_BASE,
    CLOUDFLARE_API_TOKEN,
    CLOUDFLARE_ZONE_ID,
    ENABLE_DNS_AUTOCREATE,
)

logger = logging.getLogger(__name__)


class DnsService:
    """Creates per-restaurant CNAME records on Cloudflare.

    Failures are reported in the returned dict, never raised: a restaurant
    must still be created when DNS provisioning is down.
    """

    def __init__(
        self,
        api_token: str = CLOUDFLARE_API_TOKEN,
        zone_id: str = CLOUDFLARE_ZONE_ID,
        base_domain: str = BASE_DOMAIN,
        enabled: bool = ENABLE_DNS_AUTOCREATE,
        api_base: str = CLOUDFLARE_API_BASE,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_token = api_token
        self.zone_id = zone_id
        self.base_domain = base_domain
        self.enabled = enabled
        self.api_base = api_base
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=20.0,
            transport=self._transport,
            headers={"Authorization": f"Bearer {self.api_token}", "Content-Type": "application/json"},
        )

    def _records_url(self) -> str:
        return f"{self.api_base}/zones/{self.zone_id}/dns_records"

    def _skip_reason(self) -> str | None:
        if not self.enabled:
            return "DNS auto-creation disabled"
        if not self.api_token or not self.zone_id:
            return "DNS credentials not configured"
        return None

    def create_subdomain(self, subdomain: str) -> dict[str, Any]:
        skip = self._skip_reason()
        if skip:
            logger.info("DNS: %s, skipping subdomain %s", skip, subdomain)
            return {"success": True, "message": skip}

        fqdn = f"{subdomain}.{self.base_domain}"
        record = {
            "type": "CNAME",
            "name": subdomain,
            "content": self.base_domain,
            "ttl": 1,
            "proxied": True,
            "comment": f"Auto-created for restaurant: {subdomain}",
        }
        try:
            with self._client() as client:
                response = client.post(self._records_url(), json=record)
            result = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("DNS: subdomain creation failed for %s: %s", fqdn, exc)
            return {"success": False, "error": str(exc), "message": "DNS creation failed"}

        if result.get("success"):
            logger.info("DNS: subdomain created %s", fqdn)
            return {"success": True, "subdomain": fqdn, "message": "Subdomain created successfully"}

        logger.error("DNS: Cloudflare rejected %s: %s", fqdn, result.get("errors"))
        return {"success": False, "errors": result.get("errors"), "message": "Failed to create subdomain"}
