"""Recent form: bounded, most-recent-first sequence of W/D/L symbols."""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

logger = logging.getLogger(__name__)

FORM_CAPACITY = 10
FORM_SYMBOLS = ("W", "D", "L")


@dataclass(frozen=True)
class FormRecord:
    """Last <= 10 outcomes, index 0 is the most recent.

    Counts and win percentage are derived from the sequence on every read,
    never maintained incrementally.
    """

    results: Tuple[str, ...] = ()

    def __post_init__(self):
        if len(self.results) > FORM_CAPACITY:
            raise ValueError(f"form holds at most {FORM_CAPACITY} results")
        for symbol in self.results:
            if symbol not in FORM_SYMBOLS:
                raise ValueError(f"invalid form symbol: {symbol!r}")

    @classmethod
    def from_string(cls, form: Optional[str]) -> "FormRecord":
        return cls(tuple((form or "").upper()[:FORM_CAPACITY]))

    @classmethod
    def replay(cls, symbols_oldest_first: Iterable[str]) -> "FormRecord":
        record = cls()
        for symbol in symbols_oldest_first:
            record = record.push(symbol)
        return record

    def push(self, symbol: str) -> "FormRecord":
        """Prepend a result and drop anything past the capacity."""
        symbol = symbol.upper()
        if symbol not in FORM_SYMBOLS:
            raise ValueError(f"invalid form symbol: {symbol!r}")
        return FormRecord(((symbol,) + self.results)[:FORM_CAPACITY])

    def as_string(self) -> str:
        return "".join(self.results)

    def __len__(self) -> int:
        return len(self.results)

    @property
    def wins(self) -> int:
        return self.results.count("W")

    @property
    def draws(self) -> int:
        return self.results.count("D")

    @property
    def losses(self) -> int:
        return self.results.count("L")

    @property
    def win_percentage(self) -> float:
        if not self.results:
            return 0.0
        return round(self.wins / len(self.results) * 100, 2)


class FormTracker:
    """Appends results to a team's stored form through the repository."""

    def __init__(self, repository):
        self._repository = repository

    async def append_result(self, team_id: int, symbol: str) -> FormRecord:
        current = await self._repository.get_form_record(team_id)
        updated = (current or FormRecord()).push(symbol)
        await self._repository.write_form_record(team_id, updated)
        logger.debug(
            "[FORM] team=%s %s -> %s", team_id,
            current.as_string() if current else "", updated.as_string(),
        )
        return updated
