import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlmodel import Session

from pokemaker.agent.llm_client import LLMClient
from pokemaker.core.config import settings
from pokemaker.core.db import engine
from pokemaker.drafts.evolution import EvolutionLinker
from pokemaker.drafts.hooks import PostSaveHooks
from pokemaker.drafts.session import DraftSession
from pokemaker.models import Creature, get_datetime_utc
from pokemaker.storage import ObjectStorage

logger = logging.getLogger(__name__)


def default_session_factory() -> Session:
    return Session(engine)


class DraftNotFoundError(KeyError):
    """No open draft with that id belongs to the caller."""


class DraftRegistry:
    """Open draft sessions, keyed by draft id."""

    def __init__(
        self,
        *,
        hooks: PostSaveHooks,
        session_factory: Callable[[], Session] = default_session_factory,
        storage: ObjectStorage | None = None,
        llm: LLMClient | None = None,
        autosave_delay: float | None = None,
        idle_timeout: float | None = None,
    ):
        self.hooks = hooks
        self._session_factory = session_factory
        self._storage = storage
        self._llm = llm
        self._autosave_delay = autosave_delay
        self._idle_timeout = timedelta(
            seconds=settings.DRAFT_IDLE_TIMEOUT_SECONDS if idle_timeout is None else idle_timeout
        )
        self._drafts: dict[uuid.UUID, DraftSession] = {}

    def __len__(self) -> int:
        return len(self._drafts)

    def open(self, *, owner_id: uuid.UUID | None, creature: Creature | None = None) -> DraftSession:
        """Start a draft, blank or seeded from an existing creature for editing."""
        self.evict_idle()
        draft = DraftSession(
            owner_id=owner_id,
            session_factory=self._session_factory,
            hooks=self.hooks,
            storage=self._storage,
            llm=self._llm,
            autosave_delay=self._autosave_delay,
            creature=creature,
        )
        self._drafts[draft.draft_id] = draft
        logger.info(
            "Opened draft %s for user %s (editing %s)", draft.draft_id, owner_id, draft.creature_id
        )
        return draft

    def get(self, draft_id: uuid.UUID, *, owner_id: uuid.UUID | None) -> DraftSession:
        draft = self._drafts.get(draft_id)
        if draft is None or draft.owner_id != owner_id:
            raise DraftNotFoundError(draft_id)
        draft.touch()
        return draft

    def close(self, draft_id: uuid.UUID, *, owner_id: uuid.UUID | None) -> None:
        draft = self.get(draft_id, owner_id=owner_id)
        draft.close()
        del self._drafts[draft_id]
        logger.info("Closed draft %s", draft_id)

    def evict_idle(self, now: datetime | None = None) -> int:
        """Close drafts that have seen no activity within the idle timeout."""
        cutoff = (now or get_datetime_utc()) - self._idle_timeout
        stale = [draft for draft in self._drafts.values() if draft.last_activity < cutoff]
        for draft in stale:
            draft.close()
            del self._drafts[draft.draft_id]
        if stale:
            logger.info("Evicted %d idle drafts", len(stale))
        return len(stale)

    async def close_all(self) -> None:
        """Cancel sleeping autosaves, wait for running ones, then drop every draft."""
        for draft in list(self._drafts.values()):
            draft.close()
            await draft.flush_autosave()
        self._drafts.clear()


def create_post_save_hooks(session_factory: Callable[[], Session] = default_session_factory) -> PostSaveHooks:
    hooks = PostSaveHooks()
    hooks.subscribe(EvolutionLinker(session_factory))
    return hooks


_hooks_instance: PostSaveHooks | None = None
_registry_instance: DraftRegistry | None = None


def get_post_save_hooks() -> PostSaveHooks:
    global _hooks_instance
    if _hooks_instance is None:
        _hooks_instance = create_post_save_hooks()
    return _hooks_instance


def get_draft_registry() -> DraftRegistry:
    global _registry_instance
    if _registry_instance is None:
        _registry_instance = DraftRegistry(hooks=get_post_save_hooks())
    return _registry_instance
