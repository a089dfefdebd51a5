"""Sum geographic report rows per location.

Rows are first summed per ``LocationKey``. Keys are then resolved to the
canonical location ID; keys that resolve to the same ID are summed again
and keys the resolver does not know are dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from geobid.locations import LocationResolver
from geobid.schema import GeoRow, LocationKey, MetricAggregate

logger = logging.getLogger(__name__)


@dataclass
class ResolvedLocation:
    location_id: str
    keys: List[LocationKey]
    metrics: MetricAggregate

    @property
    def label(self) -> str:
        return self.keys[0].lookup_key() if self.keys else self.location_id


def aggregate_rows(
    rows: Iterable[GeoRow],
    predicate: Optional[Callable[[MetricAggregate], bool]] = None,
) -> Dict[LocationKey, MetricAggregate]:
    """Sum metrics per key, keeping only rows that pass *predicate*."""
    totals: Dict[LocationKey, MetricAggregate] = {}
    for row in rows:
        if predicate is not None and not predicate(row.metrics):
            continue
        totals[row.key] = totals.get(row.key, MetricAggregate()) + row.metrics
    return totals


def resolve_aggregates(
    totals: Dict[LocationKey, MetricAggregate], resolver: LocationResolver
) -> Dict[str, ResolvedLocation]:
    resolved: Dict[str, ResolvedLocation] = {}
    unknown = 0
    for key, metrics in totals.items():
        loc_id = resolver.resolve(key)
        if not loc_id:
            unknown += 1
            continue
        if loc_id in resolved:
            entry = resolved[loc_id]
            entry.keys.append(key)
            entry.metrics = entry.metrics + metrics
        else:
            resolved[loc_id] = ResolvedLocation(loc_id, [key], metrics)
    if unknown:
        logger.debug("Skipped %d location keys missing from the lookup table", unknown)
    return resolved
