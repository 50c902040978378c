import logging
from collections.abc import Callable

from sqlmodel import Session

from pokemaker import crud
from pokemaker.drafts.hooks import CreatureSaved
from pokemaker.models import CreatureUpdate

logger = logging.getLogger(__name__)


class EvolutionLinker:
    """
    Keeps both sides of an evolution relationship in agreement.

    "A evolves into B" makes sure a record named B exists (a stub is created
    if needed) and that B says it evolves from A; "evolves from" is handled
    symmetrically. Links are by name, so renaming a record leaves the other
    side pointing at the old name.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    async def __call__(self, event: CreatureSaved) -> None:
        if event.evolves_into:
            self._safe_link(event, event.evolves_into, back_field="evolves_from")
        if event.evolves_from:
            self._safe_link(event, event.evolves_from, back_field="evolves_into")

    def _safe_link(self, event: CreatureSaved, counterpart_name: str, *, back_field: str) -> None:
        try:
            self.link(event, counterpart_name, back_field=back_field)
        except Exception:
            logger.exception(
                "Evolution link %s -> %s (%s) failed", event.name, counterpart_name, back_field
            )

    def link(self, event: CreatureSaved, counterpart_name: str, *, back_field: str) -> None:
        if counterpart_name.strip().lower() == event.name.strip().lower():
            logger.info("Ignoring self-referencing evolution on %s", event.name)
            return

        with self._session_factory() as session:
            counterpart = crud.find_or_create_creature_by_name(
                session=session, name=counterpart_name, owner_id=event.actor_id
            )
            if counterpart is None or counterpart.id == event.creature_id:
                return
            if getattr(counterpart, back_field) == event.name:
                return
            if (
                event.actor_id is not None
                and counterpart.user_id is not None
                and counterpart.user_id != event.actor_id
            ):
                logger.warning(
                    "Not linking %s to %s: counterpart belongs to another user",
                    event.name,
                    counterpart.name,
                )
                return

            crud.update_creature(
                session=session,
                db_creature=counterpart,
                creature_in=CreatureUpdate.model_validate({back_field: event.name}),
                actor_id=event.actor_id,
            )
            logger.info("Linked %s.%s = %s", counterpart.name, back_field, event.name)
