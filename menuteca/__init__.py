"""
menuteca — client-side cache and data-freshness layer for restaurant discovery.

    from menuteca import cache as C     # Keyed TTL cache, in-flight coalescing
    from menuteca import saga as S      # Compensated multi-step writes
    from menuteca import gateway as GW  # Remote data boundary
    from menuteca import stores as ST   # Restaurant, menu, cuisine stores
"""

from menuteca import lift
from menuteca import cache
from menuteca import saga
from menuteca import gateway
from menuteca import stores
from menuteca._types import Lazy, Clock

__version__ = "0.1.0"

__all__ = (
    "lift",
    "cache",
    "saga",
    "gateway",
    "stores",
    "Lazy",
    "Clock",
)
