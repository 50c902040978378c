import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable

from pydantic import BaseModel

from pokemaker.models import Creature, CreaturePublic

logger = logging.getLogger(__name__)


class CreatureSaved(BaseModel):
    """Emitted after a creature write has been committed."""
    creature_id: uuid.UUID
    name: str
    evolves_from: str | None = None
    evolves_into: str | None = None
    actor_id: uuid.UUID | None = None
    source: str = "api"

    @classmethod
    def from_creature(
        cls,
        creature: Creature | CreaturePublic,
        *,
        actor_id: uuid.UUID | None,
        source: str = "api",
    ) -> "CreatureSaved":
        return cls(
            creature_id=creature.id,
            name=creature.name,
            evolves_from=creature.evolves_from,
            evolves_into=creature.evolves_into,
            actor_id=actor_id,
            source=source,
        )


Handler = Callable[[CreatureSaved], Awaitable[None]]


class PostSaveHooks:
    """
    Fans committed-save events out to handlers, each in its own task.

    ``emit`` returns immediately; a handler that raises is logged and
    has no way back into the save that produced the event.
    """

    def __init__(self) -> None:
        self._handlers: list[Handler] = []
        self._tasks: set[asyncio.Task] = set()

    def subscribe(self, handler: Handler) -> None:
        self._handlers.append(handler)

    def emit(self, event: CreatureSaved) -> None:
        for handler in self._handlers:
            task = asyncio.create_task(self._run(handler, event))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run(self, handler: Handler, event: CreatureSaved) -> None:
        try:
            await handler(event)
        except Exception:
            logger.exception(
                "Post-save handler %r failed for creature %s", handler, event.creature_id
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every handler task started so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
