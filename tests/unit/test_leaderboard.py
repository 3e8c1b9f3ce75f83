"""
Unit tests for the leaderboard service, its SQL store and the materialiser.

The SQL store runs against in-memory SQLite.
"""

import asyncio

import pytest

from arcade.core.config.manager import ConfigManager
from arcade.modules.leaderboard.repository import SqlLeaderboardStore
from arcade.modules.leaderboard.service import LeaderboardMaterialiser, LeaderboardService
from arcade.modules.shared.exceptions import (
    InvalidOperationError,
    NotFoundError,
    StoreUnavailable,
    ValidationError,
)
from tests.factories import create_leaderboard_entry, create_player

pytestmark = pytest.mark.database


@pytest.fixture
def service(database, event_bus, test_logger):
    return LeaderboardService(SqlLeaderboardStore(database), ConfigManager, event_bus, test_logger)


async def _players_with_scores(database, scores):
    ids = []
    for index, score in enumerate(scores):
        player_id = await create_player(database, f"player-{index}")
        await create_leaderboard_entry(database, player_id, score)
        ids.append(player_id)
    return ids


class TestMaterialise:
    """Test rank materialisation."""

    async def test_ties_break_by_player_id(self, service, database):
        a, b, c = await _players_with_scores(database, [100, 100, 90])

        ranked = await service.materialise()
        rows = await service.get_leaderboard(limit=10)

        assert ranked == 3
        assert [(r.player_id, r.rank) for r in rows] == [(a, 1), (b, 2), (c, 3)]

    async def test_only_top_n_ranked(self, service, database):
        ids = await _players_with_scores(database, list(range(150, 0, -1)))

        ranked = await service.materialise()
        rows = await service.get_leaderboard(limit=100)

        assert ranked == 100
        assert [r.rank for r in rows] == list(range(1, 101))
        assert rows[0].player_id == ids[0]
        store = SqlLeaderboardStore(database)
        assert (await store.get_row(ids[-1])).rank == 0

    async def test_rows_leaving_top_n_are_reset(self, service, database):
        ConfigManager.override("leaderboard.top_n", 2)
        a, b = await _players_with_scores(database, [50, 40])
        await service.materialise()
        c = await create_player(database, "newcomer")
        await service.update_score(c, 60)

        await service.materialise()

        store = SqlLeaderboardStore(database)
        assert (await store.get_row(c)).rank == 1
        assert (await store.get_row(a)).rank == 2
        assert (await store.get_row(b)).rank == 0

    async def test_empty_board(self, service):
        assert await service.materialise() == 0
        assert await service.get_leaderboard(limit=5) == []

    async def test_emits_materialised_event(self, service, database, event_bus):
        received = []
        event_bus.subscribe("leaderboard.materialised", received.append)
        await _players_with_scores(database, [10])

        await service.materialise()

        assert received[0]["ranked"] == 1
        assert received[0]["top_n"] == 100


class TestUpdateScore:
    """Test monotone score submission."""

    async def test_new_row_starts_unranked(self, service, database):
        player_id = await create_player(database, "carol")

        row = await service.update_score(player_id, 30)

        assert row.rank == 0
        assert row.username == "carol"
        assert await service.get_leaderboard(limit=10) == []

    async def test_higher_score_replaces_and_keeps_rank(self, service, database):
        (player_id,) = await _players_with_scores(database, [10])
        await service.materialise()

        row = await service.update_score(player_id, 25)

        assert row.score == 25
        assert row.rank == 1

    @pytest.mark.parametrize("score", [5, 10])
    async def test_non_improving_score_is_rejected(self, service, database, score):
        (player_id,) = await _players_with_scores(database, [10])

        with pytest.raises(InvalidOperationError):
            await service.update_score(player_id, score)

        assert (await service.get_player_rank(player_id)).score == 10

    async def test_negative_score_is_rejected(self, service, database):
        player_id = await create_player(database, "dave")

        with pytest.raises(ValidationError):
            await service.update_score(player_id, -1)

    async def test_unknown_player(self, service):
        with pytest.raises(NotFoundError):
            await service.update_score(999, 10)


class TestReads:
    """Test queries."""

    @pytest.mark.parametrize("limit", [0, 101])
    async def test_limit_bounds(self, service, limit):
        with pytest.raises(ValidationError):
            await service.get_leaderboard(limit=limit)

    async def test_player_rank_is_live(self, service, database):
        a, b = await _players_with_scores(database, [50, 40])
        await service.materialise()
        await service.update_score(b, 70)

        live = await service.get_player_rank(b)

        assert live.rank == 1
        assert live.score == 70
        assert (await service.get_player_rank(a)).rank == 2

    async def test_player_without_row(self, service, database):
        player_id = await create_player(database, "erin")

        with pytest.raises(NotFoundError):
            await service.get_player_rank(player_id)


class TestMaterialiser:
    """Test the periodic ticker."""

    async def test_run_pass_counts_success(self, service, database):
        await _players_with_scores(database, [10, 20])
        materialiser = LeaderboardMaterialiser(service, interval_seconds=60)

        assert await materialiser.run_pass() == 2
        assert materialiser.get_status()["passes"] == 1

    async def test_failed_pass_is_logged_and_survived(self, mocker, test_logger):
        store = mocker.Mock()
        store.recalculate_ranks = mocker.AsyncMock(
            side_effect=StoreUnavailable("database", "recalculate_ranks")
        )
        service = LeaderboardService(store, ConfigManager, None, test_logger)
        materialiser = LeaderboardMaterialiser(service, interval_seconds=60)

        assert await materialiser.run_pass() is None
        assert materialiser.get_status()["failures"] == 1

    async def test_runs_on_interval_until_stopped(self, mocker, test_logger):
        store = mocker.Mock()
        store.recalculate_ranks = mocker.AsyncMock(return_value=0)
        service = LeaderboardService(store, ConfigManager, None, test_logger)
        materialiser = LeaderboardMaterialiser(service, interval_seconds=0.01)

        await materialiser.start()
        for _ in range(200):
            if store.recalculate_ranks.await_count >= 2:
                break
            await asyncio.sleep(0.01)
        await materialiser.stop()

        assert store.recalculate_ranks.await_count >= 2
        assert materialiser.get_status()["running"] is False

    def test_interval_defaults_to_config(self, mocker, test_logger):
        service = LeaderboardService(mocker.Mock(), ConfigManager, None, test_logger)
        materialiser = LeaderboardMaterialiser(service)

        assert materialiser.get_status()["interval_seconds"] == 60
