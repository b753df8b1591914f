"""Ranking history and recent-form maintenance."""

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fifarank.config import get_settings
from fifarank.errors import NotFoundError
from fifarank.models import Country, Match, MatchStatus, RankingHistory, RecentForm
from fifarank.ranking.form import FORM_CAPACITY, FormRecord
from fifarank.ranking.points import classify_result
from fifarank.ranking.processor import ResultProcessor

logger = logging.getLogger(__name__)
settings = get_settings()


def _snapshot_payload(row: RankingHistory) -> dict[str, Any]:
    return {
        "world_ranking": row.world_ranking,
        "confederation_ranking": row.confederation_ranking,
        "fifa_points": row.fifa_points,
        "match_id": row.match_id,
        "recorded_at": row.recorded_at,
    }


class RankingService:
    """Read side of ranking snapshots and form records.

    recalculate_forms() and reset_form() rewrite form records, so they go
    through the processor's ranking transaction like every other write.
    """

    def __init__(self, session: AsyncSession, processor: Optional[ResultProcessor] = None):
        self.session = session
        self.processor = processor

    async def _require_country(self, country_id: int) -> Country:
        country = await self.session.get(Country, country_id)
        if country is None:
            raise NotFoundError("Country", country_id)
        return country

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def team_history(self, country_id: int, limit: int = 30) -> list[dict[str, Any]]:
        await self._require_country(country_id)
        result = await self.session.execute(
            select(RankingHistory)
            .where(RankingHistory.country_id == country_id)
            .order_by(RankingHistory.recorded_at.desc(), RankingHistory.id.desc())
            .limit(limit)
        )
        return [_snapshot_payload(row) for row in result.scalars().all()]

    async def latest_snapshot(self) -> dict[str, Any]:
        """The most recent full table, ordered by world rank."""
        recorded_at = (
            await self.session.execute(select(func.max(RankingHistory.recorded_at)))
        ).scalar_one_or_none()
        if recorded_at is None:
            return {"recorded_at": None, "rankings": []}

        rows = (
            await self.session.execute(
                select(RankingHistory, Country)
                .join(Country, Country.id == RankingHistory.country_id)
                .where(RankingHistory.recorded_at == recorded_at)
                .order_by(RankingHistory.world_ranking.asc(), Country.id)
            )
        ).all()
        return {
            "recorded_at": recorded_at,
            "rankings": [
                {
                    "country_id": country.id,
                    "name": country.name,
                    "code": country.code,
                    "confederation": country.confederation,
                    **_snapshot_payload(snapshot),
                }
                for snapshot, country in rows
            ],
        }

    async def biggest_movers(
        self, days: int = 30, limit: int = 10, now: Optional[datetime] = None
    ) -> list[dict[str, Any]]:
        """Teams whose world rank moved most since the period started.

        Each team's baseline is its latest snapshot at or before the cutoff;
        teams with no such snapshot are skipped. Positive change means the
        team climbed.
        """
        cutoff = (now or datetime.utcnow()) - timedelta(days=days)
        snapshots = await self.session.execute(
            select(RankingHistory)
            .where(RankingHistory.recorded_at <= cutoff)
            .order_by(RankingHistory.recorded_at.desc(), RankingHistory.id.desc())
        )
        baseline: dict[int, RankingHistory] = {}
        for row in snapshots.scalars().all():
            baseline.setdefault(row.country_id, row)
        if not baseline:
            return []

        countries = await self.session.execute(
            select(Country).where(
                Country.is_active == True,  # noqa: E712
                Country.world_ranking.is_not(None),
                Country.id.in_(list(baseline)),
            )
        )
        movers = []
        for country in countries.scalars().all():
            before = baseline[country.id]
            change = before.world_ranking - country.world_ranking
            if change == 0:
                continue
            movers.append({
                "country_id": country.id,
                "name": country.name,
                "code": country.code,
                "previous_ranking": before.world_ranking,
                "current_ranking": country.world_ranking,
                "change": change,
                "points_change": country.fifa_points - before.fifa_points,
            })

        movers.sort(key=lambda m: (-abs(m["change"]), m["current_ranking"]))
        return movers[:limit]

    async def prune_history(self, retention_days: Optional[int] = None) -> int:
        days = retention_days if retention_days is not None else settings.RANKING_HISTORY_RETENTION_DAYS
        cutoff = datetime.utcnow() - timedelta(days=days)
        result = await self.session.execute(
            delete(RankingHistory).where(RankingHistory.recorded_at < cutoff)
        )
        await self.session.commit()
        logger.info(f"[RANKING] Pruned {result.rowcount} snapshots older than {days} days")
        return result.rowcount

    # ------------------------------------------------------------------
    # Form
    # ------------------------------------------------------------------

    async def get_form(self, country_id: int) -> dict[str, Any]:
        await self._require_country(country_id)
        row = await self.session.get(RecentForm, country_id, populate_existing=True)
        record = FormRecord.from_string(row.last_10_matches if row else "")
        return {
            "country_id": country_id,
            "last_10_matches": record.as_string(),
            "wins": record.wins,
            "draws": record.draws,
            "losses": record.losses,
            "win_percentage": record.win_percentage,
        }

    async def top_form(self, limit: int = 10, min_matches: Optional[int] = None) -> list[dict[str, Any]]:
        min_matches = min_matches if min_matches is not None else settings.TOP_FORM_MIN_MATCHES
        rows = (
            await self.session.execute(
                select(RecentForm, Country)
                .join(Country, Country.id == RecentForm.country_id)
                .where(
                    Country.is_active == True,  # noqa: E712
                    func.length(RecentForm.last_10_matches) >= min_matches,
                )
                .order_by(RecentForm.win_percentage.desc(), RecentForm.wins.desc(), Country.id)
                .limit(limit)
            )
        ).all()
        return [
            {
                "country_id": country.id,
                "name": country.name,
                "code": country.code,
                "flag_url": country.flag_url,
                "last_10_matches": form.last_10_matches,
                "wins": form.wins,
                "draws": form.draws,
                "losses": form.losses,
                "win_percentage": form.win_percentage,
            }
            for form, country in rows
        ]

    def _require_processor(self) -> ResultProcessor:
        if self.processor is None:
            raise RuntimeError("RankingService writes require a ResultProcessor")
        return self.processor

    async def reset_form(self, country_id: int) -> None:
        await self._require_country(country_id)
        async with self._require_processor().ranking_transaction() as repository:
            await repository.write_form_record(country_id, FormRecord())
        logger.info(f"[FORM] Reset form for country {country_id}")

    async def recalculate_forms(self) -> int:
        """Rebuild every team's form from its last finished matches.

        Matches replay in the order they were finalized, the same order live
        form was built in; match_date only stands in where finished_at is unset.
        """
        async with self._require_processor().ranking_transaction() as repository:
            session = repository.session
            country_ids = (await session.execute(select(Country.id))).scalars().all()

            for country_id in country_ids:
                matches = await session.execute(
                    select(Match)
                    .where(
                        Match.status == MatchStatus.FINISHED.value,
                        or_(Match.country_home_id == country_id, Match.country_away_id == country_id),
                    )
                    .order_by(func.coalesce(Match.finished_at, Match.match_date).desc(), Match.id.desc())
                    .limit(FORM_CAPACITY)
                )
                symbols = []
                for match in reversed(matches.scalars().all()):
                    if match.country_home_id == country_id:
                        result = classify_result(match.score_home, match.score_away)
                    else:
                        result = classify_result(match.score_away, match.score_home)
                    symbols.append(result.symbol)
                await repository.write_form_record(country_id, FormRecord.replay(symbols))

        logger.info(f"[FORM] Recalculated form for {len(country_ids)} countries")
        return len(country_ids)
