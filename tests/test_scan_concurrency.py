"""Concurrency tests: duplicate scans, winner uniqueness and hint idempotency.

Each concurrent caller gets its own session; they share the live state
(lock client, cache and event bus) the way request handlers do.
"""
import asyncio

from sqlalchemy import func, select

from qrhunt.models import GameWinner, HintUsage, Scan


async def _run_in_own_session(session_factory, scan_service_factory, operation):
    async with session_factory() as session:
        service = scan_service_factory(session)
        return await operation(service)


async def test_concurrent_duplicate_scans_record_once(
    db_session, session_factory, hunt_factory, scan_service_factory
):
    hunt = await hunt_factory()
    team_id = hunt.teams[0].team_id

    results = await asyncio.gather(
        *[
            _run_in_own_session(
                session_factory, scan_service_factory, lambda s: s.record_scan(team_id, "START")
            )
            for _ in range(5)
        ]
    )

    assert sum(result.success for result in results) == 1
    assert {result.error_code for result in results if not result.success} == {"already_scanned"}

    count = await db_session.scalar(select(func.count(Scan.scan_id)).where(Scan.team_id == team_id))
    assert count == 1


async def test_concurrent_finishers_produce_one_winner(
    db_session, session_factory, hunt_factory, scan_service_factory
):
    hunt = await hunt_factory(team_names=("Red Foxes", "Blue Jays", "Green Owls", "Gold Bees"))
    service = scan_service_factory(db_session)
    for team in hunt.teams:
        assert (await service.record_scan(team.team_id, "START")).success

    results = await asyncio.gather(
        *[
            _run_in_own_session(
                session_factory,
                scan_service_factory,
                lambda s, team_id=team.team_id: s.record_scan(team_id, "FINISH"),
            )
            for team in hunt.teams
        ]
    )

    assert all(result.success and result.is_game_complete for result in results)
    assert sum(result.is_winner for result in results) == 1

    winners = (
        await db_session.execute(select(GameWinner).where(GameWinner.game_id == hunt.game.game_id))
    ).scalars().all()
    assert len(winners) == 1
    winning_team = next(team for result, team in zip(results, hunt.teams) if result.is_winner)
    assert winners[0].team_id == winning_team.team_id


async def test_concurrent_hint_requests_charge_once(
    db_session, session_factory, hunt_factory, scan_service_factory
):
    hunt = await hunt_factory()
    team_id = hunt.teams[0].team_id
    node_id = hunt.nodes["FOUNTAIN"].node_id

    results = await asyncio.gather(
        *[
            _run_in_own_session(
                session_factory, scan_service_factory, lambda s: s.request_hint(team_id, node_id)
            )
            for _ in range(4)
        ]
    )

    assert sum(not result.already_used for result in results) == 1
    assert {result.points_deducted for result in results} == {50}

    count = await db_session.scalar(select(func.count(HintUsage.hint_usage_id)).where(HintUsage.team_id == team_id))
    assert count == 1


async def test_scores_are_conserved_across_concurrent_play(
    db_session, session_factory, hunt_factory, scan_service_factory, leaderboard_cache
):
    """Leaderboard totals equal awarded scan points minus hint deductions."""
    from qrhunt.services.leaderboard_service import LeaderboardService

    hunt = await hunt_factory(time_bonus_enabled=True)

    async def play(team):
        async def _steps(service):
            await service.record_scan(team.team_id, "START")
            await service.request_hint(team.team_id, hunt.nodes["FOUNTAIN"].node_id)
            await service.record_scan(team.team_id, "FOUNTAIN")
            return await service.record_scan(team.team_id, "FINISH")

        return await _run_in_own_session(session_factory, scan_service_factory, _steps)

    await asyncio.gather(*[play(team) for team in hunt.teams])

    awarded = await db_session.scalar(
        select(func.coalesce(func.sum(Scan.points_awarded), 0)).where(Scan.game_id == hunt.game.game_id)
    )
    deducted = await db_session.scalar(
        select(func.coalesce(func.sum(HintUsage.points_deducted), 0)).where(HintUsage.game_id == hunt.game.game_id)
    )

    slug = hunt.slug
    # Teams were finished by other sessions
    db_session.expire_all()
    leaderboard_cache.clear()
    payload = await LeaderboardService(db_session, leaderboard_cache).get_leaderboard(slug)

    assert sum(row["totalPoints"] for row in payload["leaderboard"]) == awarded - deducted
    assert all(row["isFinished"] for row in payload["leaderboard"])
    assert sorted(row["rank"] for row in payload["leaderboard"]) in ([1, 1], [1, 2])
