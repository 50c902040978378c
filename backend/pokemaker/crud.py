import logging
import uuid

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from pokemaker.constants import STUB_TYPE_PRIMARY
from pokemaker.core.security import get_password_hash, verify_password
from pokemaker.models import (
    Creature,
    CreatureCreate,
    CreatureUpdate,
    User,
    UserCreate,
    derive_gender_ratio,
    get_datetime_utc,
)

logger = logging.getLogger(__name__)

GENDER_KEYS = frozenset({"is_genderless", "gender_ratio_male", "gender_ratio_female"})


class CreaturePermissionError(Exception):
    """Raised when a user acts on a creature owned by someone else."""


class CreatureSaveError(Exception):
    """Raised when the database rejects a creature write."""


def create_user(*, session: Session, user_create: UserCreate) -> User:
    db_obj = User.model_validate(
        user_create, update={"hashed_password": get_password_hash(user_create.password)}
    )
    session.add(db_obj)
    session.commit()
    session.refresh(db_obj)
    return db_obj


def get_user_by_username(*, session: Session, username: str) -> User | None:
    statement = select(User).where(User.username == username)
    session_user = session.exec(statement).first()
    return session_user


# Dummy hash to use for timing attack prevention when user is not found
# This is an Argon2 hash of a random password, used to ensure constant-time comparison
DUMMY_HASH = "$argon2id$v=19$m=65536,t=3,p=4$MjQyZWE1MzBjYjJlZTI0Yw$YTU4NGM5ZTZmYjE2NzZlZjY0ZWY3ZGRkY2U2OWFjNjk"


def authenticate(*, session: Session, username: str, password: str) -> User | None:
    db_user = get_user_by_username(session=session, username=username)
    if not db_user:
        verify_password(password, DUMMY_HASH)
        return None
    verified, updated_password_hash = verify_password(password, db_user.hashed_password)
    if not verified:
        return None
    if updated_password_hash:
        db_user.hashed_password = updated_password_hash
        session.add(db_user)
        session.commit()
        session.refresh(db_user)
    return db_user


# Creatures

_ORDERINGS = {
    "newest": (Creature.created_at.desc(),),
    "oldest": (Creature.created_at.asc(),),
    "name": (func.lower(Creature.name).asc(), Creature.created_at.desc()),
    "number": (Creature.pokedex_number.asc().nulls_last(), Creature.created_at.desc()),
}


def _integrity_message(exc: IntegrityError, action: str) -> str:
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    text = str(orig) if orig is not None else ""
    message = f"Failed to {action} creature. "
    if code == "23502" or "NOT NULL" in text:
        return message + "Missing required field: " + (text or "Please check all required fields.")
    if code == "23505" or "UNIQUE" in text:
        return message + "This creature already exists."
    return message + (text or "Please try again.")


def _commit_creature(session: Session, db_creature: Creature, *, action: str) -> Creature:
    session.add(db_creature)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        logger.error("Error trying to %s creature %r: %s", action, db_creature.name, exc.orig)
        raise CreatureSaveError(_integrity_message(exc, action)) from exc
    session.refresh(db_creature)
    return db_creature


def _check_owner(db_creature: Creature, actor_id: uuid.UUID | None, verb: str) -> None:
    if actor_id is None or db_creature.user_id is None:
        return
    if db_creature.user_id != actor_id:
        raise CreaturePermissionError(f"You do not have permission to {verb} this creature.")


def create_creature(
    *, session: Session, creature_in: CreatureCreate, owner_id: uuid.UUID | None
) -> Creature:
    db_creature = Creature.model_validate(creature_in, update={"user_id": owner_id})
    return _commit_creature(session, db_creature, action="save")


def get_creature(*, session: Session, creature_id: uuid.UUID) -> Creature | None:
    return session.get(Creature, creature_id)


def get_creature_by_name(*, session: Session, name: str) -> Creature | None:
    """Case-insensitive exact match. The oldest record wins when names collide."""
    normalized = (name or "").strip().lower()
    if not normalized:
        return None
    statement = (
        select(Creature)
        .where(func.lower(Creature.name) == normalized)
        .order_by(Creature.created_at.asc())
    )
    return session.exec(statement).first()


def list_creatures(
    *,
    session: Session,
    owner_id: uuid.UUID | None = None,
    type_filter: str | None = None,
    search: str | None = None,
    sort: str = "newest",
    skip: int = 0,
    limit: int = 100,
) -> tuple[list[tuple[Creature, str | None]], int]:
    conditions = []
    if owner_id is not None:
        conditions.append(Creature.user_id == owner_id)
    if type_filter:
        conditions.append(
            or_(Creature.type_primary == type_filter, Creature.type_secondary == type_filter)
        )
    if search and search.strip():
        conditions.append(Creature.name.ilike(f"%{search.strip()}%"))

    count_statement = select(func.count()).select_from(Creature).where(*conditions)
    count = session.exec(count_statement).one()

    statement = (
        select(Creature, User.username)
        .outerjoin(User, Creature.user_id == User.id)
        .where(*conditions)
        .order_by(*_ORDERINGS.get(sort, _ORDERINGS["newest"]))
        .offset(skip)
        .limit(limit)
    )
    rows = [(creature, username) for creature, username in session.exec(statement).all()]
    return rows, count


def update_creature(
    *,
    session: Session,
    db_creature: Creature,
    creature_in: CreatureUpdate,
    actor_id: uuid.UUID | None = None,
) -> Creature:
    _check_owner(db_creature, actor_id, "edit")
    creature_data = creature_in.model_dump(exclude_unset=True)
    if GENDER_KEYS & creature_data.keys():
        # Partial updates are derived against the stored gender fields.
        merged = {
            "is_genderless": db_creature.is_genderless,
            "gender_ratio_male": db_creature.gender_ratio_male,
        }
        merged.update({k: v for k, v in creature_data.items() if k in GENDER_KEYS})
        merged.pop("gender_ratio_female", None)
        creature_data.update(derive_gender_ratio(merged))
    db_creature.sqlmodel_update(creature_data, update={"updated_at": get_datetime_utc()})
    return _commit_creature(session, db_creature, action="update")


def delete_creature(
    *, session: Session, db_creature: Creature, actor_id: uuid.UUID | None = None
) -> None:
    _check_owner(db_creature, actor_id, "delete")
    session.delete(db_creature)
    session.commit()


def find_or_create_creature_by_name(
    *, session: Session, name: str, owner_id: uuid.UUID | None
) -> Creature | None:
    """Look a creature up by name, creating a stub with just that name when missing."""
    if not name or not name.strip():
        return None

    existing = get_creature_by_name(session=session, name=name)
    if existing:
        return existing

    logger.info("Creating stub creature %r for owner %s", name.strip(), owner_id)
    return create_creature(
        session=session,
        creature_in=CreatureCreate(name=name.strip(), type_primary=STUB_TYPE_PRIMARY),
        owner_id=owner_id,
    )
