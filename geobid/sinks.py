"""Report sinks that record bid decisions for auditing."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from geobid.schema import BidDecision


def local_now(utc_offset_hours: float, now: Optional[datetime] = None) -> datetime:
    """*now* (default: current time) shifted into the fixed reporting offset."""
    tz = timezone(timedelta(hours=utc_offset_hours))
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(tz)


def weekday_column(moment: datetime) -> int:
    """1-based report column: Monday = 1 ... Sunday = 7."""
    return moment.isoweekday()


class BaseReportSink(ABC):
    @abstractmethod
    def start_run(self, now: datetime) -> None:
        """Reset today's slot before the first decision of a run is recorded."""
        ...

    @abstractmethod
    def record(self, decision: BidDecision) -> None:
        ...

    def close(self) -> None:
        pass


class MemoryReportSink(BaseReportSink):
    """Keeps the weekday log in memory: {campaign: {column: [entries]}}."""

    def __init__(self) -> None:
        self.columns: Dict[str, Dict[int, List[str]]] = {}
        self.decisions: List[BidDecision] = []
        self.column: Optional[int] = None

    def start_run(self, now: datetime) -> None:
        self.column = weekday_column(now)
        for by_column in self.columns.values():
            by_column[self.column] = []

    def record(self, decision: BidDecision) -> None:
        self.decisions.append(decision)
        if not decision.is_change or self.column is None:
            return
        self.columns.setdefault(decision.campaign, {}).setdefault(self.column, []).append(
            decision.entry
        )
