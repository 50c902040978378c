import asyncio
import enum
import logging
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ValidationError
from sqlmodel import Session

from pokemaker import crud
from pokemaker.agent.artifacts import GeneratedArtwork
from pokemaker.agent.llm_client import LLMClient
from pokemaker.agent.orchestrator import run_artwork_pipeline
from pokemaker.core.config import settings
from pokemaker.drafts.autosave import AutosaveStatus, DebouncedTask
from pokemaker.drafts.hooks import CreatureSaved, PostSaveHooks
from pokemaker.models import (
    Creature,
    CreatureBase,
    CreatureCreate,
    CreaturePublic,
    CreatureUpdate,
    derive_gender_ratio,
    get_datetime_utc,
)
from pokemaker.storage import ObjectStorage, get_storage

logger = logging.getLogger(__name__)

DRAFT_FIELDS = frozenset(CreatureBase.model_fields)
GENDER_FIELDS = frozenset({"is_genderless", "gender_ratio_male", "gender_ratio_female"})


class DraftValidationError(Exception):
    """Field-level problems to show next to the offending inputs."""

    def __init__(self, errors: dict[str, str]):
        super().__init__("; ".join(f"{field}: {message}" for field, message in errors.items()))
        self.errors = errors


class DraftRecordMissingError(Exception):
    """The record this draft was saving into has been deleted."""


class SaveKind(str, enum.Enum):
    AUTOSAVE = "autosave"
    DRAFT = "draft"
    SUBMIT = "submit"


class DraftPublic(BaseModel):
    draft_id: uuid.UUID
    creature_id: uuid.UUID | None = None
    status: AutosaveStatus
    fields: dict[str, Any]
    last_saved_at: datetime | None = None
    last_error: str | None = None
    pending_artwork_url: str | None = None
    submitted: bool = False


def _validation_errors(exc: ValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for error in exc.errors():
        field = str(error["loc"][0]) if error.get("loc") else "__root__"
        errors.setdefault(field, error["msg"])
    return errors


class DraftSession:
    """
    One user's editing session for one creature.

    The first successful save, whichever path triggers it (autosave, manual
    draft save or submit), records the backend id in ``creature_id``; every
    later save updates that id. Saves run under a per-session lock, so a
    submit racing a running autosave updates the record the autosave created
    instead of inserting another one.
    """

    def __init__(
        self,
        *,
        owner_id: uuid.UUID | None,
        session_factory: Callable[[], Session],
        hooks: PostSaveHooks,
        storage: ObjectStorage | None = None,
        llm: LLMClient | None = None,
        autosave_delay: float | None = None,
        creature: Creature | None = None,
    ):
        self.draft_id = uuid.uuid4()
        self.owner_id = owner_id
        self.creature_id: uuid.UUID | None = creature.id if creature else None
        self.fields: dict[str, Any] = (
            creature.model_dump(include=set(DRAFT_FIELDS)) if creature else {}
        )
        self.status = AutosaveStatus.IDLE
        self.last_saved_at: datetime | None = None
        self.last_error: str | None = None
        self.pending_artwork: GeneratedArtwork | None = None
        self.submitted = False
        self.opened_at = get_datetime_utc()
        self.last_activity = self.opened_at

        self._session_factory = session_factory
        self._hooks = hooks
        self._storage = storage
        self._llm = llm
        self._drawing: tuple[bytes, str] | None = None
        self._lock = asyncio.Lock()
        self._autosave = DebouncedTask(
            self._run_autosave,
            settings.AUTOSAVE_DELAY_SECONDS if autosave_delay is None else autosave_delay,
        )
        self._listeners: set[asyncio.Queue] = set()

    @property
    def name(self) -> str:
        return str(self.fields.get("name") or "").strip()

    @property
    def storage(self) -> ObjectStorage:
        if self._storage is None:
            self._storage = get_storage()
        return self._storage

    def touch(self) -> None:
        self.last_activity = get_datetime_utc()

    def snapshot(self) -> DraftPublic:
        return DraftPublic(
            draft_id=self.draft_id,
            creature_id=self.creature_id,
            status=self.status,
            fields=dict(self.fields),
            last_saved_at=self.last_saved_at,
            last_error=self.last_error,
            pending_artwork_url=self.pending_artwork.image_url if self.pending_artwork else None,
            submitted=self.submitted,
        )

    # Status events

    def status_event(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "creature_id": str(self.creature_id) if self.creature_id else None,
            "last_saved_at": self.last_saved_at.isoformat() if self.last_saved_at else None,
            "error": self.last_error,
        }

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        queue.put_nowait(self.status_event())
        self._listeners.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._listeners.discard(queue)

    def _set_status(self, status: AutosaveStatus) -> None:
        self.status = status
        event = self.status_event()
        for queue in list(self._listeners):
            queue.put_nowait(event)

    # Editing

    def _apply_gender_rule(self, merged: dict[str, Any], changes: dict[str, Any]) -> None:
        if not GENDER_FIELDS & changes.keys():
            return
        source = {k: merged[k] for k in ("is_genderless", "gender_ratio_male") if k in merged}
        derived = derive_gender_ratio(source)
        if "gender_ratio_female" in derived:
            merged["gender_ratio_male"] = derived["gender_ratio_male"]
            merged["gender_ratio_female"] = derived["gender_ratio_female"]
        elif "gender_ratio_female" in self.fields:
            merged["gender_ratio_female"] = self.fields["gender_ratio_female"]
        else:
            merged.pop("gender_ratio_female", None)

    def update_fields(self, changes: dict[str, Any]) -> DraftPublic:
        """
        Apply field edits and restart the autosave timer.

        Values are validated and normalized up front so problems surface on
        the edit that caused them. An empty name is allowed while editing.
        """
        unknown = sorted(set(changes) - DRAFT_FIELDS)
        if unknown:
            raise DraftValidationError({field: "Unknown field" for field in unknown})

        merged = {**self.fields, **changes}
        self._apply_gender_rule(merged, changes)

        name = merged.pop("name", None)
        try:
            validated = CreatureUpdate.model_validate(merged)
        except ValidationError as e:
            raise DraftValidationError(_validation_errors(e)) from e
        if name is not None and len(str(name).strip()) > 100:
            raise DraftValidationError({"name": "Name must be at most 100 characters"})

        normalized = validated.model_dump(exclude_unset=True)
        if name is not None:
            normalized["name"] = str(name).strip()
        self.fields = normalized
        self.touch()

        self._autosave.schedule()
        self._set_status(AutosaveStatus.PENDING)
        return self.snapshot()

    # Saving

    async def save(self, kind: SaveKind = SaveKind.DRAFT) -> CreaturePublic:
        """Create on the first save of the session, update the same record afterwards."""
        if not self.name:
            raise DraftValidationError({"name": "Name is required"})

        async with self._lock:
            payload = dict(self.fields)
            with self._session_factory() as session:
                if self.creature_id is None:
                    creature = crud.create_creature(
                        session=session,
                        creature_in=CreatureCreate.model_validate(payload),
                        owner_id=self.owner_id,
                    )
                    self.creature_id = creature.id
                    logger.info(
                        "Draft %s created creature %s (%s)", self.draft_id, creature.id, kind.value
                    )
                else:
                    db_creature = crud.get_creature(session=session, creature_id=self.creature_id)
                    if db_creature is None:
                        raise DraftRecordMissingError(
                            f"Creature {self.creature_id} no longer exists."
                        )
                    creature = crud.update_creature(
                        session=session,
                        db_creature=db_creature,
                        creature_in=CreatureUpdate.model_validate(payload),
                        actor_id=self.owner_id,
                    )
                    logger.info(
                        "Draft %s updated creature %s (%s)", self.draft_id, creature.id, kind.value
                    )
                saved = CreaturePublic.model_validate(creature)
            self.last_saved_at = get_datetime_utc()
            self.last_activity = self.last_saved_at

        self._hooks.emit(CreatureSaved.from_creature(saved, actor_id=self.owner_id, source=kind.value))
        return saved

    async def _run_autosave(self) -> None:
        if not self.name:
            logger.debug("Skipping autosave for draft %s: no name yet", self.draft_id)
            self._set_status(AutosaveStatus.SAVED)
            return

        self._set_status(AutosaveStatus.SAVING)
        try:
            await self.save(SaveKind.AUTOSAVE)
        except Exception as e:
            # The explicit save-draft action remains available to the user.
            logger.warning("Autosave failed for draft %s: %s", self.draft_id, e)
            self.last_error = str(e)
            self._set_status(AutosaveStatus.ERROR)
            return
        self.last_error = None
        self._set_status(AutosaveStatus.SAVED)

    async def save_draft(self) -> CreaturePublic:
        self._autosave.cancel()
        saved = await self.save(SaveKind.DRAFT)
        self.last_error = None
        self._set_status(AutosaveStatus.SAVED)
        return saved

    async def submit(self) -> CreaturePublic:
        self._autosave.cancel()
        saved = await self.save(SaveKind.SUBMIT)
        self.submitted = True
        self.last_error = None
        self._set_status(AutosaveStatus.SAVED)
        return saved

    async def flush_autosave(self) -> None:
        await self._autosave.flush()

    # Images

    async def attach_drawing(
        self, data: bytes, filename: str | None, content_type: str | None
    ) -> str:
        """Store the drawing right away so it survives even if the form is abandoned."""
        url = await self.storage.upload(data, filename, content_type=content_type)
        self._drawing = (data, content_type or "image/png")
        self.update_fields({"original_drawing_url": url})
        return url

    async def _load_drawing(self) -> tuple[bytes, str]:
        if self._drawing is not None:
            return self._drawing
        url = self.fields.get("original_drawing_url")
        if not url:
            raise DraftValidationError({"original_drawing_url": "Please upload a drawing first!"})
        self._drawing = await self.storage.read(url)
        return self._drawing

    async def generate_artwork(self, hint: str | None = None) -> GeneratedArtwork:
        """
        Produce a candidate artwork from the stored drawing. Nothing in the
        form changes until the candidate is accepted.
        """
        data, media_type = await self._load_drawing()
        artwork = await run_artwork_pipeline(
            data,
            media_type,
            hint=hint,
            creature_name=self.name or None,
            physical_appearance=self.fields.get("physical_appearance"),
            personality=self.fields.get("image_description"),
            llm=self._llm,
            storage=self.storage,
        )
        self.pending_artwork = artwork
        return artwork

    def accept_artwork(self) -> DraftPublic:
        if self.pending_artwork is None:
            raise DraftValidationError({"ai_generated_image_url": "Generate artwork first"})
        url = self.pending_artwork.image_url
        self.pending_artwork = None
        return self.update_fields({"ai_generated_image_url": url})

    def discard_artwork(self) -> DraftPublic:
        self.pending_artwork = None
        return self.snapshot()

    def close(self) -> None:
        self._autosave.cancel()
        for queue in list(self._listeners):
            queue.put_nowait(None)
        self._listeners.clear()
