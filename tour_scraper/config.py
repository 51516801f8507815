"""Configuration helpers for the tour scraper and proxy rotator."""
from __future__ import annotations

from dataclasses import dataclass, field
import os
import re
from typing import Any, Dict, Iterable, List, Mapping, Tuple
from urllib.parse import unquote, urlparse

from .errors import ConfigError
from .models import ProxyConfig

ROTATION_STRATEGIES = ("round-robin", "random", "least-used", "fastest")
PROXY_PROTOCOLS = ("http", "https", "socks4", "socks5")

DEFAULT_USER_AGENTS: Tuple[str, ...] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)

DEFAULT_DESTINATION_KEYWORDS: Tuple[str, ...] = (
    "Machu Picchu",
    "Cusco",
    "Lima",
    "Sacred Valley",
    "Inca Trail",
    "Amazon",
    "Arequipa",
    "Lake Titicaca",
    "Nazca",
    "Colca Canyon",
    "Peru",
    "Puno",
    "Huacachina",
    "Paracas",
    "Iquitos",
)


@dataclass(frozen=True)
class ThrottlingConfig:
    """Request pacing policy; times are in milliseconds."""

    concurrent_requests: int = 2
    requests_per_minute: int = 30
    retry_attempts: int = 3
    retry_delay: int = 5000
    timeout: int = 30000
    delay_between_requests: int = 2000


@dataclass(frozen=True)
class BrowserConfig:
    """Headless browser options used by the Playwright fetcher."""

    headless: bool = True
    viewport: Tuple[int, int] = (1920, 1080)
    block_resources: Tuple[str, ...] = ("font", "media")
    wait_time: int = 2000
    enable_javascript: bool = True


@dataclass(frozen=True)
class UserAgentConfig:
    rotate: bool = True
    agents: Tuple[str, ...] = DEFAULT_USER_AGENTS


@dataclass(frozen=True)
class ScraperConfig:
    """Static policy for a scraper instance."""

    name: str
    base_url: str = ""
    throttling: ThrottlingConfig = field(default_factory=ThrottlingConfig)
    selectors: Mapping[str, str] = field(default_factory=dict)
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    user_agent: UserAgentConfig = field(default_factory=UserAgentConfig)
    destination_keywords: Tuple[str, ...] = DEFAULT_DESTINATION_KEYWORDS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "base_url": self.base_url,
            "throttling": vars(self.throttling).copy(),
            "selectors": dict(self.selectors),
            "browser": {
                "headless": self.browser.headless,
                "viewport": {"width": self.browser.viewport[0], "height": self.browser.viewport[1]},
                "block_resources": list(self.browser.block_resources),
                "wait_time": self.browser.wait_time,
                "enable_javascript": self.browser.enable_javascript,
            },
            "user_agent": {"rotate": self.user_agent.rotate, "list": list(self.user_agent.agents)},
            "destination_keywords": list(self.destination_keywords),
        }


@dataclass(frozen=True)
class ProxyRotatorOptions:
    """Construction options for :class:`~tour_scraper.proxy.ProxyRotator`."""

    proxies: Tuple[ProxyConfig, ...] = ()
    max_errors_per_proxy: int = 3
    health_check_interval: int = 0
    health_check_url: str = "https://httpbin.org/ip"
    rotation_strategy: str = "round-robin"
    retry_failed_proxies: bool = False

    def __post_init__(self) -> None:
        if self.rotation_strategy not in ROTATION_STRATEGIES:
            raise ConfigError(
                f"Unknown rotation strategy {self.rotation_strategy!r}; expected one of {', '.join(ROTATION_STRATEGIES)}"
            )
        if self.max_errors_per_proxy < 1:
            raise ConfigError("max_errors_per_proxy must be at least 1")


def default_tour_operator_config() -> ScraperConfig:
    """Policy used for generic tour operator websites."""

    return ScraperConfig(name="TourOperatorScraper")


KEY_ALIASES = {"enable_java_script": "enable_javascript"}


def _camel_to_snake(name: str) -> str:
    snake = re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()
    return KEY_ALIASES.get(snake, snake)


def _normalise_keys(data: Mapping[str, Any] | None) -> Dict[str, Any]:
    if not data:
        return {}
    return {_camel_to_snake(str(key)): value for key, value in data.items()}


def _parse_int(value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Expected an integer, got {value!r}") from None


def _parse_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _ensure_list(value: str | Iterable[str] | None) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item).strip() for item in value if item and str(item).strip()]


def _parse_viewport(value: Any) -> Tuple[int, int]:
    if value is None:
        return BrowserConfig.viewport
    if isinstance(value, Mapping):
        return (_parse_int(value.get("width"), 1920), _parse_int(value.get("height"), 1080))
    width, height = value
    return (int(width), int(height))


def create_scraper_config(data: Mapping[str, Any]) -> ScraperConfig:
    """Build a :class:`ScraperConfig` from a snake_case or camelCase mapping."""

    payload = _normalise_keys(data)
    name = payload.get("name")
    if not name:
        raise ConfigError("Scraper configuration requires a name")

    throttling_data = _normalise_keys(payload.get("throttling"))
    defaults = ThrottlingConfig()
    throttling = ThrottlingConfig(
        **{
            key: _parse_int(throttling_data.get(key), getattr(defaults, key))
            for key in vars(defaults)
        }
    )

    browser_data = _normalise_keys(payload.get("browser"))
    block_resources = browser_data.get("block_resources")
    browser = BrowserConfig(
        headless=_parse_bool(browser_data.get("headless"), True),
        viewport=_parse_viewport(browser_data.get("viewport")),
        block_resources=(
            tuple(_ensure_list(block_resources))
            if block_resources is not None
            else BrowserConfig.block_resources
        ),
        wait_time=_parse_int(browser_data.get("wait_time"), 2000),
        enable_javascript=_parse_bool(browser_data.get("enable_javascript"), True),
    )

    agent_data = _normalise_keys(payload.get("user_agent"))
    agents = _ensure_list(agent_data.get("list"))
    user_agent = UserAgentConfig(
        rotate=_parse_bool(agent_data.get("rotate"), True),
        agents=tuple(agents) or DEFAULT_USER_AGENTS,
    )

    keywords = _ensure_list(payload.get("destination_keywords"))

    return ScraperConfig(
        name=str(name),
        base_url=str(payload.get("base_url") or ""),
        throttling=throttling,
        selectors=dict(payload.get("selectors") or {}),
        browser=browser,
        user_agent=user_agent,
        destination_keywords=tuple(keywords) or DEFAULT_DESTINATION_KEYWORDS,
    )


def parse_proxy(value: str | Mapping[str, Any] | ProxyConfig) -> ProxyConfig:
    """Create a :class:`ProxyConfig` from a URL string or a mapping."""

    if isinstance(value, ProxyConfig):
        return value

    if isinstance(value, str):
        raw = value.strip()
        if "://" not in raw:
            raw = f"http://{raw}"
        parsed = urlparse(raw)
        try:
            port = parsed.port
        except ValueError:
            raise ConfigError(f"Invalid proxy port in {value!r}") from None
        if not parsed.hostname or port is None:
            raise ConfigError(f"Proxy {value!r} must include host and port")
        payload: Dict[str, Any] = {
            "host": parsed.hostname,
            "port": port,
            "username": unquote(parsed.username) if parsed.username else None,
            "password": unquote(parsed.password) if parsed.password else None,
            "protocol": parsed.scheme,
        }
    elif isinstance(value, Mapping):
        payload = _normalise_keys(value)
    else:
        raise ConfigError("Proxy must be given as a string or a mapping")

    host = payload.get("host")
    if not host:
        raise ConfigError("Proxy settings require a host")
    port = _parse_int(payload.get("port"), 0)
    if port <= 0:
        raise ConfigError(f"Proxy {host!r} requires a positive port")
    protocol = str(payload.get("protocol") or "http").lower()
    if protocol not in PROXY_PROTOCOLS:
        raise ConfigError(f"Unsupported proxy protocol {protocol!r}")

    return ProxyConfig(
        host=str(host),
        port=port,
        username=payload.get("username") or None,
        password=payload.get("password") or None,
        protocol=protocol,
        active=payload.get("active") is not False,
        error_count=_parse_int(payload.get("error_count"), 0),
        response_time=payload.get("response_time") or None,
    )


def create_proxy_options(data: Mapping[str, Any]) -> ProxyRotatorOptions:
    """Build :class:`ProxyRotatorOptions` from a snake_case or camelCase mapping."""

    payload = _normalise_keys(data)
    proxies = payload.get("proxies") or []
    if isinstance(proxies, str):
        proxies = _ensure_list(proxies)
    return ProxyRotatorOptions(
        proxies=tuple(parse_proxy(proxy) for proxy in proxies),
        max_errors_per_proxy=_parse_int(payload.get("max_errors_per_proxy"), 3),
        health_check_interval=_parse_int(payload.get("health_check_interval"), 0),
        health_check_url=str(payload.get("health_check_url") or ProxyRotatorOptions.health_check_url),
        rotation_strategy=str(payload.get("rotation_strategy") or "round-robin"),
        retry_failed_proxies=_parse_bool(payload.get("retry_failed_proxies"), False),
    )


def proxies_from_env(var: str = "SCRAPER_PROXIES") -> List[ProxyConfig]:
    """Read a comma separated proxy list from the environment."""

    return [parse_proxy(item) for item in _ensure_list(os.getenv(var))]


def format_proxy_url(proxy: ProxyConfig) -> str:
    """Render a proxy as ``scheme://[user:pass@]host:port``."""

    auth = f"{proxy.username}:{proxy.password}@" if proxy.username and proxy.password else ""
    return f"{proxy.protocol or 'http'}://{auth}{proxy.host}:{proxy.port}"


__all__ = [
    "BrowserConfig",
    "ProxyRotatorOptions",
    "ScraperConfig",
    "ThrottlingConfig",
    "UserAgentConfig",
    "create_proxy_options",
    "create_scraper_config",
    "default_tour_operator_config",
    "format_proxy_url",
    "parse_proxy",
    "proxies_from_env",
]
