"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository, example_config
from .models import MatchStrategy, RouteConfig, RouterConfig, parse_duration, slugify

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "MatchStrategy",
    "RouteConfig",
    "RouterConfig",
    "example_config",
    "parse_duration",
    "slugify",
]
