import json
import logging
import uuid
from typing import Any

from fastapi import APIRouter, Body, File, HTTPException, UploadFile
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from pokemaker import crud
from pokemaker.agent.errors import ArtworkError
from pokemaker.api.deps import CurrentUser, DraftsDep, SessionDep
from pokemaker.api.routes.creatures import to_public
from pokemaker.drafts.registry import DraftNotFoundError
from pokemaker.drafts.session import (
    DraftPublic,
    DraftRecordMissingError,
    DraftSession,
    DraftValidationError,
)
from pokemaker.models import CreaturePublic, Message
from pokemaker.storage import StorageError

router = APIRouter(prefix="/drafts", tags=["drafts"])
logger = logging.getLogger(__name__)

ARTWORK_ERROR_STATUS = {
    "CONTENT_POLICY": 400,
    "INVALID_REQUEST": 400,
    "RATE_LIMIT": 429,
}


class DraftOpenRequest(BaseModel):
    creature_id: uuid.UUID | None = None


class ArtworkGenerateRequest(BaseModel):
    hint: str | None = None


class ArtworkPublic(BaseModel):
    image_url: str
    visual_description: str
    revised_prompt: str | None = None


def _get_draft(drafts: DraftsDep, id: uuid.UUID, current_user: CurrentUser) -> DraftSession:
    try:
        return drafts.get(id, owner_id=current_user.id)
    except DraftNotFoundError:
        raise HTTPException(status_code=404, detail="Draft not found")


def _validation_http_error(e: DraftValidationError) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail=[
            {"loc": ["body", field], "msg": message, "type": "value_error"}
            for field, message in e.errors.items()
        ],
    )


def _artwork_http_error(e: ArtworkError) -> HTTPException:
    return HTTPException(
        status_code=ARTWORK_ERROR_STATUS.get(e.code, 502), detail=e.to_detail()
    )


async def _save(draft: DraftSession, action: str) -> CreaturePublic:
    try:
        if action == "submit":
            return await draft.submit()
        return await draft.save_draft()
    except DraftValidationError as e:
        raise _validation_http_error(e)
    except crud.CreaturePermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except crud.CreatureSaveError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DraftRecordMissingError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/", response_model=DraftPublic)
def open_draft(
    *,
    session: SessionDep,
    current_user: CurrentUser,
    drafts: DraftsDep,
    draft_in: DraftOpenRequest | None = None,
) -> Any:
    """
    Start an editing session. With ``creature_id`` the session edits that
    creature; otherwise the first save creates a new one.
    """
    creature = None
    if draft_in and draft_in.creature_id:
        creature = crud.get_creature(session=session, creature_id=draft_in.creature_id)
        if not creature:
            raise HTTPException(status_code=404, detail="Creature not found")
        if creature.user_id is not None and creature.user_id != current_user.id:
            raise HTTPException(
                status_code=403, detail="You do not have permission to edit this creature."
            )
    return drafts.open(owner_id=current_user.id, creature=creature).snapshot()


@router.get("/{id}", response_model=DraftPublic)
def read_draft(id: uuid.UUID, current_user: CurrentUser, drafts: DraftsDep) -> Any:
    return _get_draft(drafts, id, current_user).snapshot()


@router.patch("/{id}", response_model=DraftPublic)
async def update_draft(
    id: uuid.UUID,
    current_user: CurrentUser,
    drafts: DraftsDep,
    changes: dict[str, Any] = Body(...),
) -> Any:
    """Apply field edits; the autosave timer restarts on every call."""
    draft = _get_draft(drafts, id, current_user)
    try:
        return draft.update_fields(changes)
    except DraftValidationError as e:
        raise _validation_http_error(e)


@router.post("/{id}/save", response_model=CreaturePublic)
async def save_draft(
    id: uuid.UUID, session: SessionDep, current_user: CurrentUser, drafts: DraftsDep
) -> Any:
    saved = await _save(_get_draft(drafts, id, current_user), "draft")
    creature = crud.get_creature(session=session, creature_id=saved.id)
    return to_public(session, creature) if creature else saved


@router.post("/{id}/submit", response_model=CreaturePublic)
async def submit_draft(
    id: uuid.UUID, session: SessionDep, current_user: CurrentUser, drafts: DraftsDep
) -> Any:
    """Final save. The draft is closed once the record is written."""
    draft = _get_draft(drafts, id, current_user)
    saved = await _save(draft, "submit")
    drafts.close(id, owner_id=current_user.id)
    creature = crud.get_creature(session=session, creature_id=saved.id)
    return to_public(session, creature) if creature else saved


@router.post("/{id}/drawing", response_model=DraftPublic)
async def upload_drawing(
    id: uuid.UUID,
    current_user: CurrentUser,
    drafts: DraftsDep,
    file: UploadFile = File(...),
) -> Any:
    """Store the drawing immediately and remember its URL on the draft."""
    draft = _get_draft(drafts, id, current_user)
    content = await file.read()
    try:
        await draft.attach_drawing(content, file.filename, file.content_type)
    except StorageError as e:
        raise HTTPException(status_code=400, detail=f"Failed to upload image: {e}")
    return draft.snapshot()


@router.post("/{id}/artwork", response_model=ArtworkPublic)
async def generate_artwork(
    id: uuid.UUID,
    current_user: CurrentUser,
    drafts: DraftsDep,
    artwork_in: ArtworkGenerateRequest | None = None,
) -> Any:
    """
    Analyze the stored drawing and generate a candidate illustration. The
    candidate is only applied to the draft once accepted.
    """
    draft = _get_draft(drafts, id, current_user)
    try:
        artwork = await draft.generate_artwork(hint=artwork_in.hint if artwork_in else None)
    except DraftValidationError as e:
        raise _validation_http_error(e)
    except StorageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ArtworkError as e:
        logger.warning("Artwork generation failed for draft %s: %s (%s)", id, e.message, e.code)
        raise _artwork_http_error(e)
    return ArtworkPublic(
        image_url=artwork.image_url,
        visual_description=artwork.visual_description,
        revised_prompt=artwork.revised_prompt,
    )


@router.post("/{id}/artwork/accept", response_model=DraftPublic)
async def accept_artwork(id: uuid.UUID, current_user: CurrentUser, drafts: DraftsDep) -> Any:
    draft = _get_draft(drafts, id, current_user)
    try:
        return draft.accept_artwork()
    except DraftValidationError as e:
        raise _validation_http_error(e)


@router.delete("/{id}/artwork", response_model=DraftPublic)
def discard_artwork(id: uuid.UUID, current_user: CurrentUser, drafts: DraftsDep) -> Any:
    return _get_draft(drafts, id, current_user).discard_artwork()


@router.delete("/{id}")
async def close_draft(id: uuid.UUID, current_user: CurrentUser, drafts: DraftsDep) -> Message:
    """Drop the session. Anything already saved stays saved."""
    try:
        drafts.close(id, owner_id=current_user.id)
    except DraftNotFoundError:
        raise HTTPException(status_code=404, detail="Draft not found")
    return Message(message="Draft closed")


async def _status_stream(draft: DraftSession):
    queue = draft.subscribe()
    try:
        while True:
            event = await queue.get()
            if event is None:
                return
            yield json.dumps(event)
    finally:
        draft.unsubscribe(queue)


@router.get("/{id}/events")
async def draft_events(id: uuid.UUID, current_user: CurrentUser, drafts: DraftsDep):
    """Stream autosave status changes via SSE."""
    return EventSourceResponse(_status_stream(_get_draft(drafts, id, current_user)))
