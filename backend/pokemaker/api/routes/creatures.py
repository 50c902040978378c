import logging
import uuid
from typing import Any

from fastapi import APIRouter, HTTPException, Query
from sqlmodel import Session

from pokemaker import crud
from pokemaker.api.deps import CurrentUser, HooksDep, SessionDep
from pokemaker.constants import CREATURE_TYPES, GALLERY_SORTS
from pokemaker.drafts.hooks import CreatureSaved
from pokemaker.models import (
    Creature,
    CreatureCreate,
    CreaturePublic,
    CreaturesPublic,
    CreatureUpdate,
    Message,
    User,
)

router = APIRouter(prefix="/creatures", tags=["creatures"])
logger = logging.getLogger(__name__)


def to_public(session: Session, creature: Creature, username: str | None = None) -> CreaturePublic:
    if username is None and creature.user_id is not None:
        owner = session.get(User, creature.user_id)
        username = owner.username if owner else None
    return CreaturePublic.model_validate(creature, update={"creator_username": username})


def _get_or_404(session: Session, id: uuid.UUID) -> Creature:
    creature = crud.get_creature(session=session, creature_id=id)
    if not creature:
        raise HTTPException(status_code=404, detail="Creature not found")
    return creature


@router.get("/", response_model=CreaturesPublic)
def read_creatures(
    session: SessionDep,
    current_user: CurrentUser,
    mine: bool = False,
    type_: str | None = Query(default=None, alias="type"),
    q: str | None = None,
    sort: str = "newest",
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
) -> Any:
    """
    Gallery listing. ``mine`` restricts to the caller's creatures, ``type``
    matches either type slot and ``q`` is a case-insensitive name search.
    """
    if type_ and type_ not in CREATURE_TYPES:
        raise HTTPException(status_code=422, detail=f"Unknown type: {type_}")
    if sort not in GALLERY_SORTS:
        raise HTTPException(
            status_code=422, detail=f"sort must be one of: {', '.join(GALLERY_SORTS)}"
        )
    rows, count = crud.list_creatures(
        session=session,
        owner_id=current_user.id if mine else None,
        type_filter=type_,
        search=q,
        sort=sort,
        skip=skip,
        limit=limit,
    )
    return CreaturesPublic(
        data=[to_public(session, creature, username) for creature, username in rows],
        count=count,
    )


@router.get("/by-name/{name}", response_model=CreaturePublic)
def read_creature_by_name(session: SessionDep, current_user: CurrentUser, name: str) -> Any:
    creature = crud.get_creature_by_name(session=session, name=name)
    if not creature:
        raise HTTPException(status_code=404, detail="Creature not found")
    return to_public(session, creature)


@router.get("/{id}", response_model=CreaturePublic)
def read_creature(session: SessionDep, current_user: CurrentUser, id: uuid.UUID) -> Any:
    return to_public(session, _get_or_404(session, id))


@router.post("/", response_model=CreaturePublic)
async def create_creature(
    *, session: SessionDep, current_user: CurrentUser, hooks: HooksDep, creature_in: CreatureCreate
) -> Any:
    try:
        creature = crud.create_creature(
            session=session, creature_in=creature_in, owner_id=current_user.id
        )
    except crud.CreatureSaveError as e:
        raise HTTPException(status_code=400, detail=str(e))
    hooks.emit(CreatureSaved.from_creature(creature, actor_id=current_user.id))
    return to_public(session, creature, current_user.username)


@router.patch("/{id}", response_model=CreaturePublic)
async def update_creature(
    *,
    session: SessionDep,
    current_user: CurrentUser,
    hooks: HooksDep,
    id: uuid.UUID,
    creature_in: CreatureUpdate,
) -> Any:
    creature = _get_or_404(session, id)
    try:
        creature = crud.update_creature(
            session=session, db_creature=creature, creature_in=creature_in, actor_id=current_user.id
        )
    except crud.CreaturePermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except crud.CreatureSaveError as e:
        raise HTTPException(status_code=400, detail=str(e))
    hooks.emit(CreatureSaved.from_creature(creature, actor_id=current_user.id))
    return to_public(session, creature)


@router.delete("/{id}")
def delete_creature(session: SessionDep, current_user: CurrentUser, id: uuid.UUID) -> Message:
    creature = _get_or_404(session, id)
    try:
        crud.delete_creature(session=session, db_creature=creature, actor_id=current_user.id)
    except crud.CreaturePermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    logger.info("User %s deleted creature %s", current_user.username, id)
    return Message(message="Creature deleted successfully")
