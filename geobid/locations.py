"""Resolve composite (city, region, country) keys to canonical location IDs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence

import pandas as pd

from geobid.config import LocationsConfig
from geobid.mappers import normalize_id
from geobid.schema import LocationKey

logger = logging.getLogger(__name__)


class LocationTableError(ValueError):
    pass


class LocationResolver:
    """Lookup table built from rows of ``[id, name, key, ...]`` values."""

    def __init__(self, ids_by_key: Dict[str, str], names_by_id: Optional[Dict[str, str]] = None):
        self._ids_by_key = dict(ids_by_key)
        self._names_by_id = dict(names_by_id or {})

    def __len__(self) -> int:
        return len(self._ids_by_key)

    @classmethod
    def from_rows(
        cls,
        rows: Iterable[Sequence],
        id_column: int = 0,
        name_column: int = 1,
        key_column: int = 2,
    ) -> "LocationResolver":
        ids_by_key: Dict[str, str] = {}
        names_by_id: Dict[str, str] = {}
        for row in rows:
            if len(row) <= max(id_column, key_column):
                continue
            loc_id = normalize_id(row[id_column])
            key = str(row[key_column] or "").strip()
            if not loc_id or not key:
                continue
            # Later rows win, like a plain dict assignment.
            ids_by_key[key] = loc_id
            if len(row) > name_column and row[name_column]:
                names_by_id[loc_id] = str(row[name_column])
        return cls(ids_by_key, names_by_id)

    @classmethod
    def from_csv(cls, path: str | Path, cfg: Optional[LocationsConfig] = None) -> "LocationResolver":
        cfg = cfg or LocationsConfig()
        p = Path(path)
        if not p.exists():
            raise LocationTableError(f"Locations file not found: {p}")
        sep = "\t" if p.suffix.lower() == ".tsv" else ","
        df = pd.read_csv(p, sep=sep, dtype=str, header=None).fillna("")
        resolver = cls.from_rows(
            df.values.tolist(),
            id_column=cfg.id_column,
            name_column=cfg.name_column,
            key_column=cfg.key_column,
        )
        logger.info("Loaded %d location keys from %s", len(resolver), p)
        return resolver

    def resolve(self, key: LocationKey) -> Optional[str]:
        return self._ids_by_key.get(key.lookup_key())

    def name_for(self, location_id: str) -> str:
        return self._names_by_id.get(normalize_id(location_id), "")
