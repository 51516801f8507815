"""Tour extraction pipeline for operator websites of unknown structure."""
from .config import (
    ProxyRotatorOptions,
    ScraperConfig,
    create_proxy_options,
    create_scraper_config,
    default_tour_operator_config,
    parse_proxy,
    proxies_from_env,
)
from .errors import ConfigError, FetchError, ScraperError
from .models import Activity, ProxyConfig, ScanResult, ScrapeResult, TourData
from .proxy import ProxyRotator
from .scraper import TourOperatorScraper
from .workflow import candidate_listing_urls, run_scan, scan_website

__all__ = [
    "Activity",
    "ConfigError",
    "FetchError",
    "ProxyConfig",
    "ProxyRotator",
    "ProxyRotatorOptions",
    "ScanResult",
    "ScrapeResult",
    "ScraperConfig",
    "ScraperError",
    "TourData",
    "TourOperatorScraper",
    "candidate_listing_urls",
    "create_proxy_options",
    "create_scraper_config",
    "default_tour_operator_config",
    "parse_proxy",
    "proxies_from_env",
    "run_scan",
    "scan_website",
]
