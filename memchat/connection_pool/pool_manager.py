"""Shared HTTP clients for outbound calls"""

import logging
from typing import Dict, Optional

from httpx import AsyncClient, Limits, Timeout

logger = logging.getLogger(__name__)


class ConnectionPoolManager:
    """
    One pooled HTTP/2 client per named upstream

    Clients are created on first use and live until close_all() at shutdown.
    """

    def __init__(self, timeout_seconds: float = 30.0):
        self.clients: Dict[str, AsyncClient] = {}
        self.limits = Limits(
            max_keepalive_connections=10,
            max_connections=50,
            keepalive_expiry=30.0,
        )
        self.timeout = Timeout(timeout_seconds, connect=10.0)

    def get_client(self, name: str, headers: Optional[Dict[str, str]] = None) -> AsyncClient:
        """Client for an upstream; headers only apply when it is first created"""
        client = self.clients.get(name)
        if client is None:
            client = AsyncClient(
                limits=self.limits,
                timeout=self.timeout,
                headers=headers,
                http2=True,
            )
            self.clients[name] = client
        return client

    async def close_all(self):
        """Close every client"""
        for name, client in self.clients.items():
            try:
                await client.aclose()
            except Exception:
                logger.warning("Failed to close HTTP client %s", name, exc_info=True)
        self.clients.clear()
