"""Read-only views of the history log rendered with rich."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Sequence

from rich.table import Table
from rich.text import Text

from .config import Config, facet_name
from .models import Facet, LogEntry


def format_duration(seconds: int) -> str:
    """Return ``seconds`` as ``H:MM``."""
    hours, rest = divmod(seconds, 3600)
    return f"{hours}:{rest // 60:02d}"


@dataclass(slots=True)
class HistoryView:
    """A filtered slice of the history log."""

    entries: Sequence[LogEntry]
    config: Config | None

    def _name(self, facet: Facet) -> str:
        return facet_name(facet, self.config)

    def _facets(self) -> list[Facet]:
        return sorted({entry.facet for entry in self.entries if not entry.paused})

    def lines(self) -> Text:
        """One line per entry, oldest first."""
        text = Text()
        for entry in self.entries:
            local = entry.time.astimezone()
            state = " (paused)" if entry.paused else ""
            text.append(f"{local:%Y-%m-%d %H:%M}  ", style="dim")
            text.append(self._name(entry.facet), style="bold")
            text.append(f"{state}  {format_duration(entry.duration)}\n")
        return text

    def totals_by_day(self) -> dict[date, dict[Facet, int]]:
        """Active seconds per local start day and facet."""
        days: dict[date, dict[Facet, int]] = defaultdict(lambda: defaultdict(int))
        for entry in self.entries:
            if entry.paused:
                continue
            days[entry.time.astimezone().date()][entry.facet] += entry.duration
        return {day: dict(facets) for day, facets in days.items()}

    def totals(self) -> dict[Facet, int]:
        """Active seconds per facet over the whole view."""
        totals: dict[Facet, int] = defaultdict(int)
        for entry in self.entries:
            if not entry.paused:
                totals[entry.facet] += entry.duration
        return dict(totals)

    def table_by_day(self) -> Table:
        facets = self._facets()
        table = Table(show_header=True, header_style="bold")
        table.add_column("Day")
        for facet in facets:
            table.add_column(self._name(facet), justify="right")
        table.add_column("Total", justify="right", style="blue")
        for day, per_facet in sorted(self.totals_by_day().items()):
            table.add_row(
                day.isoformat(),
                *(
                    format_duration(per_facet[f]) if f in per_facet else "--"
                    for f in facets
                ),
                format_duration(sum(per_facet.values())),
            )
        return table

    def summarized(self) -> Table:
        totals = self.totals()
        overall = sum(totals.values())
        table = Table("Facet", "Time", "Share", header_style="bold")
        for facet in sorted(totals, key=lambda f: totals[f], reverse=True):
            share = totals[facet] / overall * 100 if overall else 0.0
            table.add_row(
                self._name(facet),
                format_duration(totals[facet]),
                f"{share:.1f}%",
            )
        table.add_row("Total", format_duration(overall), "", style="blue")
        return table


class History:
    """The complete history log plus the names to show for each facet."""

    def __init__(self, entries: Sequence[LogEntry], config: Config | None):
        self._entries = list(entries)
        self._config = config

    def all(self) -> HistoryView:
        return HistoryView(self._entries, self._config)

    def since(self, when: datetime) -> HistoryView:
        """Entries that started at or after ``when``."""
        return HistoryView(
            [entry for entry in self._entries if entry.time >= when],
            self._config,
        )
