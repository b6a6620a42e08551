"""Engine components: fingerprint → match store → publisher pool."""

from .fingerprint import fingerprint, resolve_field
from .match_store import MatchStore
from .matcher import Matcher, match_allow_list
from .publisher_pool import PublisherPool
from .workers import RouteWorkers

__all__ = [
    "MatchStore",
    "Matcher",
    "PublisherPool",
    "RouteWorkers",
    "fingerprint",
    "match_allow_list",
    "resolve_field",
]
