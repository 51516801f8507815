"""Tests for the proxy rotator."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List
import unittest

import pytest

from tour_scraper.config import ProxyRotatorOptions
from tour_scraper.errors import ConfigError
from tour_scraper.models import ProxyConfig
from tour_scraper.proxy import ProxyRotator


def _pool(count: int = 3) -> tuple:
    return tuple(ProxyConfig(host=f"10.0.0.{index}", port=8000 + index) for index in range(count))


def _rotator(strategy: str = "round-robin", max_errors: int = 3, **kwargs) -> ProxyRotator:
    options = ProxyRotatorOptions(
        proxies=_pool(), max_errors_per_proxy=max_errors, rotation_strategy=strategy, **kwargs
    )
    return ProxyRotator(options)


class RoundRobinTests(unittest.TestCase):
    def test_cycles_through_active_pool(self) -> None:
        rotator = _rotator()
        picked = [rotator.get_next() for _ in range(5)]
        self.assertEqual([proxy.port for proxy in picked], [8000, 8001, 8002, 8000, 8001])
        self.assertTrue(all(proxy.last_used is not None for proxy in picked))

    def test_index_restarts_when_membership_changes(self) -> None:
        rotator = _rotator(max_errors=1)
        rotator.get_next()
        rotator.get_next()
        rotator.report_error(rotator.proxies[0], RuntimeError("timeout"))
        self.assertEqual([rotator.get_next().port for _ in range(3)], [8001, 8002, 8001])

    def test_source_proxies_are_not_mutated(self) -> None:
        options = ProxyRotatorOptions(proxies=_pool(), max_errors_per_proxy=1)
        rotator = ProxyRotator(options)
        rotator.report_error(options.proxies[0], "refused")
        self.assertTrue(options.proxies[0].active)
        self.assertFalse(rotator.proxies[0].active)


class DeactivationTests(unittest.TestCase):
    def test_proxy_is_excluded_after_max_errors(self) -> None:
        rotator = _rotator(max_errors=2)
        target = ProxyConfig(host="10.0.0.1", port=8001)
        self.assertEqual(rotator.get_stats()["active"], 3)

        rotator.report_error(target, "first")
        self.assertEqual(rotator.get_stats()["active"], 3)
        rotator.report_error(target, "second")

        stats = rotator.get_stats()
        self.assertEqual(stats["active"], 2)
        self.assertEqual(stats["inactive"], 1)
        self.assertEqual(stats["total_errors"], 2)
        ports = {rotator.get_next().port for _ in range(6)}
        self.assertEqual(ports, {8000, 8002})

    def test_unknown_proxy_reports_are_ignored(self) -> None:
        rotator = _rotator()
        rotator.report_error(ProxyConfig(host="192.168.1.1", port=1), "nope")
        rotator.report_success(ProxyConfig(host="192.168.1.1", port=1), 10)
        self.assertEqual(rotator.get_stats()["total_errors"], 0)

    def test_empty_pool_returns_none(self) -> None:
        rotator = _rotator(max_errors=1)
        for proxy in list(rotator.proxies):
            rotator.report_error(proxy, "down")
        with self.assertLogs("tour_scraper.proxy", level="WARNING") as logs:
            self.assertIsNone(rotator.get_next())
        self.assertIn("No active proxies", "\n".join(logs.output))

    def test_reset_reactivates_everything(self) -> None:
        rotator = _rotator(max_errors=1)
        for proxy in list(rotator.proxies):
            rotator.report_error(proxy, "down")
        rotator.reset_error_counts()
        stats = rotator.get_stats()
        self.assertEqual(stats["active"], 3)
        self.assertEqual(stats["total_errors"], 0)
        self.assertEqual(rotator.get_next().port, 8000)


class SelectionStrategyTests(unittest.TestCase):
    def test_least_used_prefers_never_used_then_oldest(self) -> None:
        rotator = _rotator("least-used")
        now = datetime.now(timezone.utc)
        rotator.proxies[0].last_used = now
        rotator.proxies[1].last_used = now - timedelta(minutes=5)
        self.assertEqual(rotator.get_next().port, 8002)
        self.assertEqual(rotator.get_next().port, 8001)

    def test_fastest_prefers_untested_then_lowest_average(self) -> None:
        rotator = _rotator("fastest")
        rotator.report_success(rotator.proxies[0], 300)
        rotator.report_success(rotator.proxies[1], 100)
        self.assertEqual(rotator.get_next().port, 8002)
        rotator.report_success(rotator.proxies[2], 500)
        self.assertEqual(rotator.get_next().port, 8001)

    def test_random_only_returns_active(self) -> None:
        rotator = _rotator("random", max_errors=1)
        rotator.report_error(rotator.proxies[1], "down")
        for _ in range(20):
            self.assertIn(rotator.get_next().port, {8000, 8002})

    def test_moving_average(self) -> None:
        rotator = _rotator()
        proxy = rotator.proxies[0]
        rotator.report_success(proxy, 200)
        self.assertEqual(proxy.response_time, 200)
        rotator.report_success(proxy, 100)
        self.assertEqual(proxy.response_time, 150)
        self.assertEqual(rotator.get_stats()["average_response_time"], 50)

    def test_invalid_strategy_is_rejected(self) -> None:
        with self.assertRaises(ConfigError):
            ProxyRotatorOptions(rotation_strategy="fastest-first")

    def test_format_proxy_url(self) -> None:
        proxy = ProxyConfig(host="proxy.local", port=3128, username="u", password="p", protocol="socks5")
        self.assertEqual(ProxyRotator.format_proxy_url(proxy), "socks5://u:p@proxy.local:3128")


@pytest.fixture
def anyio_backend() -> str:
    """Restrict anyio tests to the asyncio backend for deterministic behaviour."""

    return "asyncio"


@pytest.mark.anyio
async def test_health_check_isolates_failures() -> None:
    seen: List[str] = []
    outcomes: Dict[int, object] = {8000: True, 8001: False, 8002: RuntimeError("proxy refused")}

    async def probe(proxy: ProxyConfig, url: str) -> bool:
        seen.append(url)
        outcome = outcomes[proxy.port]
        if isinstance(outcome, Exception):
            raise outcome
        return bool(outcome)

    options = ProxyRotatorOptions(
        proxies=_pool(), max_errors_per_proxy=1, health_check_url="https://health.example/ip"
    )
    rotator = ProxyRotator(options, probe=probe)

    results = await rotator.run_health_check()

    assert results == [True, False, False]
    assert seen == ["https://health.example/ip"] * 3
    assert rotator.proxies[0].response_time is not None
    stats = rotator.get_stats()
    assert stats["active"] == 1
    assert stats["total_errors"] == 2


@pytest.mark.anyio
async def test_periodic_health_check_runs_until_disposed() -> None:
    calls: List[int] = []

    async def probe(proxy: ProxyConfig, url: str) -> bool:
        calls.append(proxy.port)
        return True

    options = ProxyRotatorOptions(proxies=_pool(1), health_check_interval=10)
    rotator = ProxyRotator(options, probe=probe)
    task = rotator._health_task
    try:
        for _ in range(50):
            if calls:
                break
            await asyncio.sleep(0.01)
    finally:
        await rotator.dispose()

    assert calls
    assert rotator._health_task is None
    assert task is not None and task.cancelled()


def test_health_check_outside_event_loop_is_not_started(caplog: pytest.LogCaptureFixture) -> None:
    options = ProxyRotatorOptions(proxies=_pool(1), health_check_interval=1000)

    with caplog.at_level("WARNING", logger="tour_scraper.proxy"):
        rotator = ProxyRotator(options)

    assert rotator._health_task is None
    assert "health checks every 1000 ms not started" in caplog.text
