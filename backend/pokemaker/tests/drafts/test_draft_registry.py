from datetime import timedelta

import pytest

from pokemaker.drafts.registry import DraftNotFoundError, DraftRegistry
from pokemaker.models import get_datetime_utc


@pytest.fixture
def idle_registry(hooks, session_factory, storage):
    return DraftRegistry(
        hooks=hooks,
        session_factory=session_factory,
        storage=storage,
        autosave_delay=60,
        idle_timeout=60,
    )


@pytest.mark.asyncio
async def test_opening_a_draft_evicts_idle_ones(idle_registry, user):
    stale = idle_registry.open(owner_id=user.id)
    fresh = idle_registry.open(owner_id=user.id)
    stale.last_activity = get_datetime_utc() - timedelta(minutes=5)
    listener = stale.subscribe()

    idle_registry.open(owner_id=user.id)

    assert len(idle_registry) == 2
    with pytest.raises(DraftNotFoundError):
        idle_registry.get(stale.draft_id, owner_id=user.id)
    assert idle_registry.get(fresh.draft_id, owner_id=user.id) is fresh
    assert listener.get_nowait()["status"] == "idle"
    assert listener.get_nowait() is None


@pytest.mark.asyncio
async def test_edits_keep_a_draft_alive(idle_registry, user):
    draft = idle_registry.open(owner_id=user.id)
    draft.last_activity = get_datetime_utc() - timedelta(minutes=5)

    draft.update_fields({"hp": 10})

    assert idle_registry.evict_idle() == 0
    assert idle_registry.evict_idle(now=get_datetime_utc() + timedelta(minutes=2)) == 1
    assert len(idle_registry) == 0


@pytest.mark.asyncio
async def test_lookup_counts_as_activity(idle_registry, user):
    draft = idle_registry.open(owner_id=user.id)
    draft.last_activity = get_datetime_utc() - timedelta(minutes=5)

    idle_registry.get(draft.draft_id, owner_id=user.id)

    assert idle_registry.evict_idle() == 0
