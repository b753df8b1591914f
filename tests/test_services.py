"""Service layer against a real SQLite database."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from fifarank.errors import ConflictError, NotFoundError, ValidationError
from fifarank.models import Country, Match, MatchStatus, RankingHistory, RecentForm
from fifarank.services import CompetitionService, CountryService, MatchService, RankingService
from tests.factories import add_participant, make_competition, make_country, make_match


class TestCountryService:
    @pytest.mark.asyncio
    async def test_create_defaults_code_and_ranks(self, session, processor):
        service = CountryService(session, processor)
        low = await service.create_country({"name": "Norway", "confederation": "UEFA", "fifa_points": 1400})
        high = await service.create_country({"name": "Brazil", "confederation": "CONMEBOL", "fifa_points": 1800})

        assert low.code == "NOR"
        assert high.world_ranking == 1
        assert high.confederation_ranking == 1
        low = await service._fresh(low.id)
        assert low.world_ranking == 2

        form = await session.get(RecentForm, high.id)
        assert form is not None
        assert form.last_10_matches == ""

    @pytest.mark.asyncio
    async def test_duplicate_name_or_code_conflicts(self, session, processor):
        service = CountryService(session, processor)
        await service.create_country({"name": "Japan", "code": "JPN", "confederation": "AFC"})
        with pytest.raises(ConflictError):
            await service.create_country({"name": "Japan", "code": "JAP", "confederation": "AFC"})
        with pytest.raises(ConflictError):
            await service.create_country({"name": "Nippon", "code": "jpn", "confederation": "AFC"})

    @pytest.mark.asyncio
    async def test_invalid_confederation(self, session, processor):
        with pytest.raises(ValidationError):
            await CountryService(session, processor).create_country(
                {"name": "Atlantis", "confederation": "FIFA"}
            )

    @pytest.mark.asyncio
    async def test_update_points_reranks(self, session, processor):
        service = CountryService(session, processor)
        a = await service.create_country({"name": "Ghana", "confederation": "CAF", "fifa_points": 1300})
        b = await service.create_country({"name": "Egypt", "confederation": "CAF", "fifa_points": 1350})

        updated = await service.update_country(a.id, {"fifa_points": Decimal("1400.50")})

        assert updated.fifa_points == Decimal("1400.50")
        assert updated.world_ranking == 1
        assert (await service._fresh(b.id)).world_ranking == 2

    @pytest.mark.asyncio
    async def test_deactivate_leaves_rank_table(self, session, processor):
        service = CountryService(session, processor)
        a = await service.create_country({"name": "Chile", "confederation": "CONMEBOL", "fifa_points": 1500})
        b = await service.create_country({"name": "Peru", "confederation": "CONMEBOL", "fifa_points": 1450})

        removed = await service.deactivate_country(a.id)

        assert removed.is_active is False
        assert removed.world_ranking is None
        assert (await service._fresh(b.id)).world_ranking == 1

    @pytest.mark.asyncio
    async def test_deactivate_with_unfinished_match_conflicts(self, session, processor):
        service = CountryService(session, processor)
        a = await service.create_country({"name": "Mexico", "confederation": "CONCACAF"})
        b = await service.create_country({"name": "Canada", "confederation": "CONCACAF"})
        await make_match(session, a, b)

        with pytest.raises(ConflictError):
            await service.deactivate_country(a.id)
        assert (await service._fresh(a.id)).is_active is True

    @pytest.mark.asyncio
    async def test_deactivate_in_active_competition_conflicts(self, session, processor):
        service = CountryService(session, processor)
        a = await service.create_country({"name": "Fiji", "confederation": "OFC"})
        competition = await make_competition(session, type="continental", confederation="OFC", status="ongoing")
        await add_participant(session, competition.id, a.id)

        with pytest.raises(ConflictError):
            await service.deactivate_country(a.id)

    @pytest.mark.asyncio
    async def test_list_filters_and_envelope(self, session):
        await make_country(session, "Spain", "ESP", points="1700", world_ranking=1)
        await make_country(session, "Senegal", "SEN", "CAF", points="1600", world_ranking=2)
        await make_country(session, "Serbia", "SRB", points="1500", world_ranking=3)

        page = await CountryService(session).list_countries(confederation="UEFA", search="s", limit=1)

        assert page["total"] == 2
        assert page["limit"] == 1
        assert [c.code for c in page["data"]] == ["ESP"]

    @pytest.mark.asyncio
    async def test_get_unknown_country(self, session):
        with pytest.raises(NotFoundError):
            await CountryService(session).get_country_detail(404)

    @pytest.mark.asyncio
    async def test_compare_reports_first_minus_second(self, session):
        a = await make_country(session, "Korea Republic", "KOR", "AFC", points="1580", world_ranking=3)
        b = await make_country(session, "Australia", "AUS", "AFC", points="1560", world_ranking=5)
        session.add(RecentForm(country_id=a.id, last_10_matches="WL", wins=1, losses=1, win_percentage=50.0))
        await session.commit()

        comparison = await CountryService(session).compare(a.id, b.id)

        assert comparison["country1"]["recent_form"] == "WL"
        assert comparison["country2"]["recent_form"] == ""
        assert comparison["differences"] == {
            "fifa_points_diff": Decimal("20"),
            "world_ranking_diff": -2,
            "win_percentage_diff": 50.0,
        }

    @pytest.mark.asyncio
    async def test_compare_with_unranked_team(self, session):
        a = await make_country(session, "Bhutan", "BHU", "AFC", points="900", world_ranking=1)
        b = await make_country(session, "Brunei", "BRU", "AFC", points="850")

        comparison = await CountryService(session).compare(a.id, b.id)

        assert comparison["differences"]["world_ranking_diff"] is None

    @pytest.mark.asyncio
    async def test_writes_require_processor(self, session):
        with pytest.raises(RuntimeError):
            await CountryService(session).create_country({"name": "Oman", "confederation": "AFC"})


class TestCompetitionService:
    @pytest.mark.asyncio
    async def test_default_importance_by_type(self, session):
        service = CompetitionService(session)
        world = await service.create_competition({"name": "World Cup", "year": 2026, "type": "world"})
        copa = await service.create_competition(
            {"name": "Copa America", "year": 2024, "type": "continental", "confederation": "CONMEBOL"}
        )
        assert world.match_importance_factor == 4.0
        assert copa.match_importance_factor == 3.0
        assert world.status == "upcoming"

    @pytest.mark.asyncio
    async def test_invalid_type(self, session):
        with pytest.raises(ValidationError):
            await CompetitionService(session).create_competition(
                {"name": "Cup", "year": 2024, "type": "regional"}
            )

    @pytest.mark.asyncio
    async def test_add_participants_rejects_duplicates(self, session):
        service = CompetitionService(session)
        a = await make_country(session, "Italy", "ITA")
        b = await make_country(session, "Wales", "WAL")
        competition = await make_competition(session)

        await service.add_participants(competition.id, [a.id])
        with pytest.raises(ConflictError):
            await service.add_participants(competition.id, [b.id, a.id])

        participants = await service.get_participants(competition.id)
        assert [p["country_id"] for p in participants] == [a.id]

    @pytest.mark.asyncio
    async def test_add_participants_unknown_country_adds_nothing(self, session):
        service = CompetitionService(session)
        a = await make_country(session, "Greece", "GRE")
        competition = await make_competition(session)
        competition_id, country_id = competition.id, a.id

        with pytest.raises(NotFoundError):
            await service.add_participants(competition_id, [country_id, 999])
        assert await service.get_participants(competition_id) == []

    @pytest.mark.asyncio
    async def test_standings_grouped_and_ordered(self, session):
        service = CompetitionService(session)
        competition = await make_competition(session)
        a = await make_country(session, "Austria", "AUT")
        b = await make_country(session, "Belgium", "BEL")
        c = await make_country(session, "Croatia", "CRO")
        await service.add_participants(competition.id, [a.id, b.id], groups={a.id: "A", b.id: "A"})
        await service.add_participants(competition.id, [c.id])

        standings = await service.get_standings(competition.id)

        assert set(standings) == {"A", "Overall"}
        # Level on everything: alphabetical
        assert [row["country_name"] for row in standings["A"]] == ["Austria", "Belgium"]

    @pytest.mark.asyncio
    async def test_delete_with_finished_match_conflicts(self, session):
        competition = await make_competition(session)
        a = await make_country(session, "Iran", "IRN", "AFC")
        b = await make_country(session, "Iraq", "IRQ", "AFC")
        await make_match(session, a, b, competition_id=competition.id, status=MatchStatus.FINISHED.value,
                         score_home=1, score_away=0)

        with pytest.raises(ConflictError):
            await CompetitionService(session).delete_competition(competition.id)


class TestMatchService:
    @pytest.mark.asyncio
    async def test_create_inherits_competition_importance(self, session):
        competition = await make_competition(session, importance=3.0)
        a = await make_country(session, "France", "FRA")
        b = await make_country(session, "Poland", "POL")

        match = await MatchService(session).create_match({
            "country_home_id": a.id, "country_away_id": b.id,
            "competition_id": competition.id, "match_date": datetime(2024, 6, 21),
        })

        assert match.match_importance_factor == 3.0
        assert match.status == MatchStatus.SCHEDULED.value

    @pytest.mark.asyncio
    async def test_create_friendly_defaults_to_one(self, session):
        a = await make_country(session, "Qatar", "QAT", "AFC")
        b = await make_country(session, "Kenya", "KEN", "CAF")
        match = await MatchService(session).create_match(
            {"country_home_id": a.id, "country_away_id": b.id, "match_date": datetime(2024, 3, 1)}
        )
        assert match.match_importance_factor == 1.0

    @pytest.mark.asyncio
    async def test_same_team_twice_rejected(self, session):
        a = await make_country(session, "Togo", "TOG", "CAF")
        with pytest.raises(ValidationError):
            await MatchService(session).create_match(
                {"country_home_id": a.id, "country_away_id": a.id, "match_date": datetime(2024, 3, 1)}
            )

    @pytest.mark.asyncio
    async def test_unknown_competition(self, session):
        a = await make_country(session, "Mali", "MLI", "CAF")
        b = await make_country(session, "Niger", "NIG", "CAF")
        with pytest.raises(NotFoundError):
            await MatchService(session).create_match({
                "country_home_id": a.id, "country_away_id": b.id,
                "competition_id": 77, "match_date": datetime(2024, 3, 1),
            })

    @pytest.mark.asyncio
    async def test_delete_finished_match_conflicts(self, session, session_factory, processor):
        a = await make_country(session, "Chad", "CHA", "CAF")
        b = await make_country(session, "Benin", "BEN", "CAF")
        match = await make_match(session, a, b)
        await processor.record_match_result(match.id, 1, 0)

        async with session_factory() as reader:
            with pytest.raises(ConflictError):
                await MatchService(reader).delete_match(match.id)

    @pytest.mark.asyncio
    async def test_head_to_head_from_first_team_perspective(self, session, session_factory, processor):
        a = await make_country(session, "Uruguay", "URU", "CONMEBOL")
        b = await make_country(session, "Paraguay", "PAR", "CONMEBOL")
        for home, away, score in [(a, b, (2, 0)), (b, a, (1, 0)), (b, a, (0, 3)), (a, b, (1, 1))]:
            match = await make_match(session, home, away)
            await processor.record_match_result(match.id, *score)
        await make_match(session, a, b)  # still scheduled, ignored

        async with session_factory() as reader:
            h2h = await MatchService(reader).head_to_head(a.id, b.id)

        assert h2h["statistics"] == {"total": 4, "country1_wins": 2, "country2_wins": 1, "draws": 1}

    @pytest.mark.asyncio
    async def test_upcoming_and_recent(self, session, processor):
        a = await make_country(session, "Jamaica", "JAM", "CONCACAF")
        b = await make_country(session, "Haiti", "HAI", "CONCACAF")
        now = datetime(2025, 1, 1)
        later = await make_match(session, a, b, match_date=now + timedelta(days=10))
        sooner = await make_match(session, b, a, match_date=now + timedelta(days=2))
        played = await make_match(session, a, b, match_date=now - timedelta(days=5))
        await processor.record_match_result(played.id, 2, 2)

        service = MatchService(session)
        upcoming = await service.upcoming(now=now)
        recent = await service.recent()

        assert [m["id"] for m in upcoming] == [sooner.id, later.id]
        assert upcoming[0]["home_code"] == "HAI"
        assert [m["id"] for m in recent] == [played.id]

    @pytest.mark.asyncio
    async def test_event_team_must_be_participant(self, session):
        a = await make_country(session, "Oman", "OMA", "AFC")
        b = await make_country(session, "Syria", "SYR", "AFC")
        c = await make_country(session, "Nepal", "NEP", "AFC")
        match = await make_match(session, a, b)
        service = MatchService(session)

        await service.add_event(match.id, {"country_id": a.id, "event_type": "goal", "minute": 12})
        with pytest.raises(ValidationError):
            await service.add_event(match.id, {"country_id": c.id, "event_type": "goal", "minute": 30})

        detail = await service.get_match_detail(match.id)
        assert [e["country_name"] for e in detail["events"]] == ["Oman"]


class TestRankingService:
    @pytest.mark.asyncio
    async def test_recalculate_forms_replays_history(self, session, processor):
        a = await make_country(session, "Norway", "NOR")
        b = await make_country(session, "Sweden", "SWE")
        results = [(1, 0), (0, 0), (0, 2)]
        for day, score in enumerate(results):
            match = await make_match(session, a, b, match_date=datetime(2024, 1, 1 + day))
            await processor.record_match_result(match.id, *score)

        service = RankingService(session, processor)
        await service.reset_form(a.id)
        assert (await service.get_form(a.id))["last_10_matches"] == ""

        updated = await service.recalculate_forms()

        assert updated == 2
        assert (await service.get_form(a.id))["last_10_matches"] == "LDW"
        assert (await service.get_form(b.id))["last_10_matches"] == "WDL"

    @pytest.mark.asyncio
    async def test_recalculate_follows_finalization_order(self, session, processor):
        a = await make_country(session, "Latvia", "LVA")
        b = await make_country(session, "Estonia", "EST")
        later = await make_match(session, a, b, match_date=datetime(2024, 5, 10))
        earlier = await make_match(session, a, b, match_date=datetime(2024, 5, 1))
        # Entered out of date order
        await processor.record_match_result(later.id, 1, 0)
        await processor.record_match_result(earlier.id, 0, 1)

        service = RankingService(session, processor)
        live = (await service.get_form(a.id))["last_10_matches"]
        await service.recalculate_forms()

        assert live == "LW"
        assert (await service.get_form(a.id))["last_10_matches"] == "LW"

    @pytest.mark.asyncio
    async def test_top_form_requires_minimum_results(self, session, processor):
        a = await make_country(session, "Iceland", "ISL")
        b = await make_country(session, "Faroe Islands", "FRO")
        session.add(RecentForm(country_id=a.id, last_10_matches="WWWWD", wins=4, draws=1, win_percentage=80.0))
        session.add(RecentForm(country_id=b.id, last_10_matches="WWWW", wins=4, win_percentage=100.0))
        await session.commit()

        top = await RankingService(session, processor).top_form(min_matches=5)

        assert [t["country_id"] for t in top] == [a.id]

    @pytest.mark.asyncio
    async def test_team_history_most_recent_first(self, session, processor):
        a = await make_country(session, "Wales", "WAL")
        b = await make_country(session, "Scotland", "SCO")
        for day in range(3):
            match = await make_match(session, a, b, match_date=datetime(2024, 2, 1 + day))
            await processor.record_match_result(match.id, 1, 0)

        history = await RankingService(session).team_history(a.id, limit=2)

        assert len(history) == 2
        assert history[0]["recorded_at"] >= history[1]["recorded_at"]
        assert history[0]["fifa_points"] > history[1]["fifa_points"]

    @pytest.mark.asyncio
    async def test_latest_snapshot(self, session, processor):
        a = await make_country(session, "Peru", "PER", "CONMEBOL", points="1500")
        b = await make_country(session, "Chile", "CHI", "CONMEBOL", points="1497")
        match = await make_match(session, a, b)
        await processor.record_match_result(match.id, 0, 1)

        latest = await RankingService(session).latest_snapshot()

        assert [r["code"] for r in latest["rankings"]] == ["CHI", "PER"]
        assert latest["rankings"][0]["world_ranking"] == 1

    @pytest.mark.asyncio
    async def test_biggest_movers_against_old_baseline(self, session):
        now = datetime(2025, 6, 1)
        a = await make_country(session, "Morocco", "MAR", "CAF", points="1700", world_ranking=1)
        b = await make_country(session, "Tunisia", "TUN", "CAF", points="1600", world_ranking=2)
        c = await make_country(session, "Algeria", "ALG", "CAF", points="1500", world_ranking=3)
        old = now - timedelta(days=40)
        for country, rank, points in [(a, 3, "1400"), (b, 2, "1600"), (c, 1, "1650")]:
            session.add(RankingHistory(
                country_id=country.id, world_ranking=rank, confederation_ranking=rank,
                fifa_points=Decimal(points), recorded_at=old,
            ))
        await session.commit()

        movers = await RankingService(session).biggest_movers(days=30, now=now)

        assert [(m["code"], m["change"]) for m in movers] == [("MAR", 2), ("ALG", -2)]
        assert movers[0]["points_change"] == Decimal("300")

    @pytest.mark.asyncio
    async def test_prune_history(self, session):
        a = await make_country(session, "Cuba", "CUB", "CONCACAF")
        session.add(RankingHistory(
            country_id=a.id, world_ranking=1, confederation_ranking=1,
            fifa_points=Decimal("100"), recorded_at=datetime.utcnow() - timedelta(days=400),
        ))
        session.add(RankingHistory(
            country_id=a.id, world_ranking=1, confederation_ranking=1, fifa_points=Decimal("110"),
        ))
        await session.commit()

        deleted = await RankingService(session).prune_history(retention_days=365)

        assert deleted == 1
        remaining = (await session.execute(select(RankingHistory))).scalars().all()
        assert [r.fifa_points for r in remaining] == [Decimal("110")]
