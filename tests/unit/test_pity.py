"""
Unit tests for PityStateManager.
"""

import pytest

from arcade.modules.gacha.pity import PityStateManager, pity_key
from arcade.modules.shared.contracts import PityState
from arcade.modules.shared.exceptions import StoreUnavailable


class TestPityStateManager:
    """Test load / stage / commit / peek."""

    async def test_load_defaults_to_zero_for_new_pair(self, pity_store, pity_cache):
        manager = PityStateManager(pity_store, pity_cache)

        assert await manager.load(1, 2) == PityState(0, 0)

    async def test_commit_writes_store_and_invalidates_cache(self, pity_store, pity_cache):
        manager = PityStateManager(pity_store, pity_cache)
        await manager.stage(1, 2, PityState(4, 4))

        await manager.commit(1, 2, PityState(5, 5))

        assert pity_store.states[(1, 2)] == PityState(5, 5)
        assert await pity_cache.get(1, 2) is None
        assert await manager.load(1, 2) == PityState(5, 5)

    async def test_stage_failure_is_swallowed(self, pity_store, pity_cache):
        pity_cache.fail_put = True
        manager = PityStateManager(pity_store, pity_cache)

        await manager.stage(1, 2, PityState(1, 1))

        assert pity_cache.states == {}

    async def test_commit_failure_surfaces(self, pity_store, pity_cache):
        pity_store.fail_save = True
        manager = PityStateManager(pity_store, pity_cache)

        with pytest.raises(StoreUnavailable):
            await manager.commit(1, 2, PityState(1, 1))

    async def test_peek_prefers_staged_value(self, pity_store, pity_cache):
        manager = PityStateManager(pity_store, pity_cache)
        await manager.commit(1, 2, PityState(2, 2))
        await manager.stage(1, 2, PityState(3, 3))

        assert await manager.peek(1, 2) == PityState(3, 3)

    async def test_peek_falls_back_to_store(self, pity_store, pity_cache):
        manager = PityStateManager(pity_store, pity_cache)
        await manager.commit(1, 2, PityState(2, 2))

        assert await manager.peek(1, 2) == PityState(2, 2)

    def test_cache_key_layout(self):
        assert pity_key(3, 42) == "gacha:pity:3:42"
