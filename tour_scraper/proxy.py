"""Outbound proxy pool with pluggable rotation and health tracking."""
from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime, timezone
import logging
import random
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import aiohttp

from .config import ProxyRotatorOptions, format_proxy_url
from .models import ProxyConfig

LOGGER = logging.getLogger(__name__)

HEALTH_CHECK_TIMEOUT = 10.0

Probe = Callable[[ProxyConfig, str], Awaitable[bool]]


async def http_probe(proxy: ProxyConfig, url: str) -> bool:
    """Issue a GET for ``url`` through ``proxy`` and report whether it succeeded."""

    timeout = aiohttp.ClientTimeout(total=HEALTH_CHECK_TIMEOUT)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        async with session.get(url, proxy=format_proxy_url(proxy)) as response:
            return response.status < 400


class ProxyRotator:
    """Hands out proxies according to a rotation strategy.

    The pool is mutated in place by :meth:`report_error` and
    :meth:`report_success`. A rotator is meant to be driven from a single
    event loop; callers running several threads must add their own locking.
    """

    def __init__(self, options: ProxyRotatorOptions, probe: Optional[Probe] = None) -> None:
        self.options = options
        self.proxies: List[ProxyConfig] = [
            ProxyConfig(
                host=proxy.host,
                port=proxy.port,
                username=proxy.username,
                password=proxy.password,
                protocol=proxy.protocol or "http",
                active=proxy.active is not False,
                last_used=proxy.last_used,
                error_count=proxy.error_count or 0,
                response_time=proxy.response_time,
            )
            for proxy in options.proxies
        ]
        self._probe: Probe = probe or http_probe
        self._index = 0
        self._last_active: Tuple[Tuple[str, int], ...] = ()
        self._health_task: Optional[asyncio.Task[None]] = None

        if options.health_check_interval > 0:
            self.start_health_check()

    def _active(self) -> List[ProxyConfig]:
        limit = self.options.max_errors_per_proxy
        return [proxy for proxy in self.proxies if proxy.active and proxy.error_count < limit]

    def _find(self, proxy: ProxyConfig) -> Optional[ProxyConfig]:
        for candidate in self.proxies:
            if candidate.key == proxy.key:
                return candidate
        return None

    def get_next(self) -> Optional[ProxyConfig]:
        """Return the next proxy to use, or ``None`` when the pool is exhausted."""

        active = self._active()
        if not active:
            LOGGER.warning("No active proxies available")
            return None

        strategy = self.options.rotation_strategy
        if strategy == "random":
            selected = random.choice(active)
        elif strategy == "least-used":
            selected = self._least_used(active)
        elif strategy == "fastest":
            selected = self._fastest(active)
        else:
            selected = self._round_robin(active)

        selected.last_used = datetime.now(timezone.utc)
        LOGGER.debug("Selected proxy %s:%s using %s", selected.host, selected.port, strategy)
        return selected

    def _round_robin(self, active: List[ProxyConfig]) -> ProxyConfig:
        membership = tuple(proxy.key for proxy in active)
        if membership != self._last_active:
            self._index = 0
            self._last_active = membership
        proxy = active[self._index % len(active)]
        self._index = (self._index + 1) % len(active)
        return proxy

    @staticmethod
    def _least_used(active: List[ProxyConfig]) -> ProxyConfig:
        # never-used proxies sort first; min() keeps pool order on ties
        return min(active, key=lambda proxy: proxy.last_used.timestamp() if proxy.last_used else 0.0)

    @staticmethod
    def _fastest(active: List[ProxyConfig]) -> ProxyConfig:
        # untested proxies are preferred so they get measured
        return min(active, key=lambda proxy: -1.0 if proxy.response_time is None else proxy.response_time)

    def report_error(self, proxy: ProxyConfig, error: BaseException | str) -> None:
        target = self._find(proxy)
        if target is None:
            return
        target.error_count += 1
        LOGGER.warning(
            "Proxy error reported for %s:%s (errors=%d): %s",
            target.host,
            target.port,
            target.error_count,
            error,
        )
        if target.active and target.error_count >= self.options.max_errors_per_proxy:
            target.active = False
            LOGGER.error(
                "Proxy %s:%s deactivated after %d errors", target.host, target.port, target.error_count
            )

    def report_success(self, proxy: ProxyConfig, response_time: float) -> None:
        """Fold ``response_time`` (ms) into the proxy's running average."""

        target = self._find(proxy)
        if target is None:
            return
        previous = target.response_time if target.response_time is not None else response_time
        target.response_time = (previous + response_time) / 2
        LOGGER.debug(
            "Proxy %s:%s succeeded in %.0f ms (average %.0f ms)",
            target.host,
            target.port,
            response_time,
            target.response_time,
        )

    async def test_proxy(self, proxy: ProxyConfig) -> bool:
        """Probe ``proxy`` against the health check URL and record the outcome."""

        started = time.perf_counter()
        try:
            healthy = await self._probe(proxy, self.options.health_check_url)
        except Exception as exc:
            self.report_error(proxy, exc)
            return False
        elapsed = (time.perf_counter() - started) * 1000
        if healthy:
            self.report_success(proxy, elapsed)
        else:
            self.report_error(proxy, "Health check failed")
        return healthy

    async def run_health_check(self) -> List[bool]:
        """Test every proxy concurrently; one failing probe never aborts the batch."""

        LOGGER.info("Starting proxy health check")
        outcomes = await asyncio.gather(
            *(self.test_proxy(proxy) for proxy in self.proxies), return_exceptions=True
        )
        LOGGER.info(
            "Proxy health check completed: %d of %d proxies active",
            len(self._active()),
            len(self.proxies),
        )
        return [outcome is True for outcome in outcomes]

    async def _health_loop(self) -> None:
        interval = self.options.health_check_interval / 1000
        while True:
            await asyncio.sleep(interval)
            await self.run_health_check()

    def start_health_check(self) -> None:
        """Schedule periodic health checks on the running event loop.

        Must be called from inside the loop. A rotator built before the loop
        starts (for example at import time) skips the automatic start, so call
        this again once the loop is running.
        """

        if self._health_task is not None and not self._health_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.warning(
                "No running event loop; periodic proxy health checks every %d ms not started",
                self.options.health_check_interval,
            )
            return
        self._health_task = loop.create_task(self._health_loop())

    async def stop_health_check(self) -> None:
        task, self._health_task = self._health_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def dispose(self) -> None:
        await self.stop_health_check()
        LOGGER.info("Proxy rotator disposed")

    def reset_error_counts(self) -> None:
        """Reactivate every proxy and clear its error counter."""

        for proxy in self.proxies:
            proxy.error_count = 0
            proxy.active = True
        LOGGER.info("Reset error counts for %d proxies", len(self.proxies))

    def get_stats(self) -> Dict[str, Any]:
        active = self._active()
        total = len(self.proxies)
        response_total = sum(proxy.response_time or 0.0 for proxy in self.proxies)
        return {
            "total": total,
            "active": len(active),
            "inactive": total - len(active),
            "average_response_time": response_total / total if total else 0.0,
            "total_errors": sum(proxy.error_count for proxy in self.proxies),
        }

    format_proxy_url = staticmethod(format_proxy_url)


__all__ = ["ProxyRotator", "http_probe"]
