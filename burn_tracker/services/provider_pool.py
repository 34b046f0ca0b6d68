"""
RPC provider pool with on-demand health checks.

This service provides:
- Primary and fallback endpoint tiers built from configuration
- Liveness probing (current chain height) without retry, so one dead
  endpoint never blocks startup
- Ordered acquisition of healthy endpoints for fleet workers
- Single replacement lookup for calculator failover, preferring endpoints
  no fleet worker has claimed
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set

import structlog

from burn_tracker.core.config import Settings, ChainConfig, settings as default_settings
from burn_tracker.core.exceptions import ConfigurationError, NoHealthyEndpointsError
from burn_tracker.models.burn import EndpointTier
from burn_tracker.services.rpc_client import EvmRpcClient, mask_url


logger = structlog.get_logger(__name__)


@dataclass
class Endpoint:
    """A configured RPC endpoint and its last observed health."""
    url: str
    tier: EndpointTier
    client: Any
    healthy: bool = False
    last_checked: Optional[datetime] = None
    last_error: Optional[str] = None
    latest_block: Optional[int] = None
    _probe_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def display_url(self) -> str:
        return mask_url(self.url)

    @property
    def is_backup(self) -> bool:
        return self.tier is EndpointTier.FALLBACK


class ProviderPool:
    """Holds candidate endpoints and hands out the reachable ones."""

    def __init__(self, endpoints: List[Endpoint], probe_timeout: Optional[float] = None):
        self.endpoints = endpoints
        self.probe_timeout = probe_timeout or ChainConfig.get_rpc_config()["probe_timeout"]
        self._claims: Dict[str, int] = {}
        self.logger = logger.bind(service="provider_pool")

        self.logger.info(
            "RPC endpoints configured",
            total_endpoints=len(self.endpoints),
            primary_count=len(self.primaries),
            fallback_count=len(self.fallbacks)
        )

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "ProviderPool":
        """
        Build endpoints from RPC_PRIMARY_URLS / RPC_FALLBACK_URLS.

        Raises:
            ConfigurationError: if both lists are empty
        """
        config = config or default_settings
        if not config.primary_rpc_urls and not config.fallback_rpc_urls:
            raise ConfigurationError("No RPC endpoints configured", {"setting": "RPC_PRIMARY_URLS"})

        endpoints = [
            Endpoint(url=url, tier=EndpointTier.PRIMARY, client=EvmRpcClient(url, timeout=config.rpc_timeout))
            for url in config.primary_rpc_urls
        ]
        endpoints.extend(
            Endpoint(url=url, tier=EndpointTier.FALLBACK, client=EvmRpcClient(url, timeout=config.rpc_timeout))
            for url in config.fallback_rpc_urls
        )
        return cls(endpoints, probe_timeout=config.rpc_probe_timeout)

    @property
    def primaries(self) -> List[Endpoint]:
        return [ep for ep in self.endpoints if ep.tier is EndpointTier.PRIMARY]

    @property
    def fallbacks(self) -> List[Endpoint]:
        return [ep for ep in self.endpoints if ep.tier is EndpointTier.FALLBACK]

    async def probe(self, endpoint: Endpoint) -> bool:
        """Check liveness by fetching the chain height; never raises."""
        async with endpoint._probe_lock:
            try:
                height = await asyncio.wait_for(
                    endpoint.client.get_block_number(),
                    timeout=self.probe_timeout
                )
                endpoint.healthy = True
                endpoint.latest_block = height
                endpoint.last_error = None
            except Exception as e:
                endpoint.healthy = False
                endpoint.last_error = str(e) or type(e).__name__
                self.logger.warning(
                    "Endpoint failed liveness probe",
                    endpoint=endpoint.display_url,
                    tier=endpoint.tier.value,
                    error=endpoint.last_error
                )
            finally:
                endpoint.last_checked = datetime.now(timezone.utc)
            return endpoint.healthy

    async def acquire_healthy(self, required_count: int) -> List[Endpoint]:
        """
        Get up to required_count reachable endpoints, primaries first.

        All primaries are probed; fallbacks are probed in order only while
        the count is still short.

        Raises:
            NoHealthyEndpointsError: if nothing is reachable
        """
        primaries = self.primaries
        results = await asyncio.gather(*(self.probe(ep) for ep in primaries))
        healthy = [ep for ep, ok in zip(primaries, results) if ok]
        probed = len(primaries)

        for endpoint in self.fallbacks:
            if len(healthy) >= required_count:
                break
            probed += 1
            if await self.probe(endpoint):
                healthy.append(endpoint)

        if not healthy:
            raise NoHealthyEndpointsError(required=required_count, probed=probed)

        if len(healthy) < required_count:
            self.logger.warning(
                "Fewer healthy endpoints than requested",
                requested=required_count,
                available=len(healthy)
            )

        self.logger.info(
            "Healthy endpoints acquired",
            endpoints=[ep.display_url for ep in healthy]
        )
        return healthy

    @property
    def in_use(self) -> Set[str]:
        """URLs currently claimed by a worker or a failover."""
        return {url for url, count in self._claims.items() if count > 0}

    def claim(self, endpoints: Iterable[Endpoint]):
        for endpoint in endpoints:
            self._claims[endpoint.url] = self._claims.get(endpoint.url, 0) + 1

    def release(self, endpoints: Iterable[Endpoint]):
        for endpoint in endpoints:
            remaining = self._claims.get(endpoint.url, 0) - 1
            if remaining > 0:
                self._claims[endpoint.url] = remaining
            else:
                self._claims.pop(endpoint.url, None)

    async def acquire_replacement(self, exclude: Iterable[str] = ()) -> Optional[Endpoint]:
        """
        Get a reachable endpoint whose URL is not excluded.

        Unclaimed endpoints are tried first, in tier order; an endpoint
        another worker holds is returned only when no spare is reachable.
        The result is claimed and the caller must release it.
        """
        excluded = set(exclude)
        candidates = [ep for ep in self.primaries + self.fallbacks if ep.url not in excluded]
        busy = self.in_use
        spares = [ep for ep in candidates if ep.url not in busy]
        shared = [ep for ep in candidates if ep.url in busy]

        for endpoint in spares + shared:
            # a spare claimed by a concurrent failover since the snapshot is skipped
            if endpoint.url not in busy and endpoint.url in self.in_use:
                continue
            self.claim([endpoint])
            if await self.probe(endpoint):
                if endpoint.url in busy:
                    self.logger.warning(
                        "No spare endpoint reachable, sharing a busy one",
                        endpoint=endpoint.display_url
                    )
                return endpoint
            self.release([endpoint])
        return None

    async def health_check(self) -> Dict[str, Any]:
        """Probe every endpoint and report its state."""
        await asyncio.gather(*(self.probe(ep) for ep in self.endpoints))
        return self.snapshot()

    def snapshot(self) -> Dict[str, Any]:
        """Last observed endpoint state, without probing."""
        busy = self.in_use
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "healthy_count": sum(1 for ep in self.endpoints if ep.healthy),
            "endpoints": [
                {
                    "url": ep.display_url,
                    "tier": ep.tier.value,
                    "healthy": ep.healthy,
                    "in_use": ep.url in busy,
                    "latest_block": ep.latest_block,
                    "last_checked": ep.last_checked.isoformat() if ep.last_checked else None,
                    "error": ep.last_error,
                }
                for ep in self.endpoints
            ],
        }

    async def close(self):
        """Clean up all client connections."""
        for endpoint in self.endpoints:
            try:
                await endpoint.client.close()
            except Exception as e:
                self.logger.warning("Error closing RPC client", endpoint=endpoint.display_url, error=str(e))

        self.logger.info("All RPC clients closed")
