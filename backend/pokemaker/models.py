import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ValidationInfo, computed_field, field_validator, model_validator
from sqlalchemy import DateTime, JSON
from sqlmodel import Field, SQLModel

from pokemaker.constants import (
    BODY_SHAPES,
    CREATURE_COLORS,
    CREATURE_TYPES,
    EGG_GROUPS,
    EVOLUTION_STAGES,
    GENDER_PERCENT_TOTAL,
    GROWTH_RATES,
    HEIGHT_UNITS,
    STAT_FIELDS,
    STAT_MAX,
    STAT_MIN,
    WEIGHT_UNITS,
)


def get_datetime_utc() -> datetime:
    return datetime.now(timezone.utc)


def derive_gender_ratio(data: dict[str, Any]) -> dict[str, Any]:
    """
    Keep the two gender percentages complementary.

    The female share is never taken from input: it is recomputed from the male
    share whenever that is present, and both are cleared for genderless
    creatures.
    """
    data = dict(data)
    if data.get("is_genderless"):
        data["gender_ratio_male"] = None
        data["gender_ratio_female"] = None
        return data

    if "gender_ratio_male" not in data:
        data.pop("gender_ratio_female", None)
        return data

    male = data["gender_ratio_male"]
    if male is None or male == "":
        data["gender_ratio_male"] = None
        data["gender_ratio_female"] = None
        return data
    try:
        male_value = float(male)
    except (TypeError, ValueError):
        # Field validation reports the bad value.
        data.pop("gender_ratio_female", None)
        return data
    data["gender_ratio_female"] = GENDER_PERCENT_TOTAL - male_value
    return data


# Shared properties
class UserBase(SQLModel):
    username: str = Field(unique=True, index=True, min_length=1, max_length=50)
    display_name: str | None = Field(default=None, max_length=100)
    is_active: bool = True


# Properties to receive via API on creation
class UserCreate(UserBase):
    password: str = Field(min_length=8, max_length=128)


# Database model, database table inferred from class name
class User(UserBase, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    hashed_password: str
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


# Properties to return via API, id is always required
class UserPublic(UserBase):
    id: uuid.UUID
    created_at: datetime | None = None


# Generic message
class Message(SQLModel):
    message: str


# JSON payload containing access token
class Token(SQLModel):
    access_token: str
    token_type: str = "bearer"


# Contents of JWT token
class TokenPayload(SQLModel):
    sub: str | None = None


# Creatures

class LevelUpMove(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    level: int | None = Field(default=None, ge=1, le=100)


_TAG_CHOICES: dict[str, list[str]] = {
    "type_primary": CREATURE_TYPES,
    "type_secondary": CREATURE_TYPES,
    "color": CREATURE_COLORS,
    "shape": BODY_SHAPES,
    "height_unit": HEIGHT_UNITS,
    "weight_unit": WEIGHT_UNITS,
    "evolution_stage": EVOLUTION_STAGES,
    "egg_group_1": EGG_GROUPS,
    "egg_group_2": EGG_GROUPS,
    "growth_rate": GROWTH_RATES,
}


class CreatureBase(SQLModel):
    # Identity
    name: str = Field(index=True, min_length=1, max_length=100)
    pokedex_number: int | None = Field(default=None, ge=0)
    category: str | None = Field(default=None, max_length=100)
    type_primary: str | None = Field(default=None, max_length=20)
    type_secondary: str | None = Field(default=None, max_length=20)
    color: str | None = Field(default=None, max_length=20)

    # Physical
    height_value: float | None = Field(default=None, ge=0)
    height_unit: str | None = Field(default=None, max_length=20)
    weight_value: float | None = Field(default=None, ge=0)
    weight_unit: str | None = Field(default=None, max_length=20)
    shape: str | None = Field(default=None, max_length=50)
    pokedex_entry: str | None = Field(default=None)

    # Battle stats
    hp: int | None = Field(default=None, ge=STAT_MIN, le=STAT_MAX)
    attack: int | None = Field(default=None, ge=STAT_MIN, le=STAT_MAX)
    defense: int | None = Field(default=None, ge=STAT_MIN, le=STAT_MAX)
    special_attack: int | None = Field(default=None, ge=STAT_MIN, le=STAT_MAX)
    special_defense: int | None = Field(default=None, ge=STAT_MIN, le=STAT_MAX)
    speed: int | None = Field(default=None, ge=STAT_MIN, le=STAT_MAX)

    # Abilities
    ability_1_name: str | None = Field(default=None, max_length=100)
    ability_1_description: str | None = Field(default=None)
    ability_2_name: str | None = Field(default=None, max_length=100)
    ability_2_description: str | None = Field(default=None)
    hidden_ability_name: str | None = Field(default=None, max_length=100)
    hidden_ability_description: str | None = Field(default=None)

    # Evolution & breeding
    evolution_stage: str | None = Field(default=None, max_length=20)
    evolves_from: str | None = Field(default=None, max_length=100)
    evolves_into: str | None = Field(default=None, max_length=100)
    evolution_method: str | None = Field(default=None)
    egg_group_1: str | None = Field(default=None, max_length=30)
    egg_group_2: str | None = Field(default=None, max_length=30)
    is_genderless: bool | None = Field(default=None)
    gender_ratio_male: float | None = Field(default=None, ge=0, le=GENDER_PERCENT_TOTAL)
    gender_ratio_female: float | None = Field(default=None, ge=0, le=GENDER_PERCENT_TOTAL)
    egg_cycles: int | None = Field(default=None, ge=0)

    # Game mechanics
    catch_rate: int | None = Field(default=None, ge=1, le=255)
    base_friendship: int | None = Field(default=None, ge=0, le=255)
    growth_rate: str | None = Field(default=None, max_length=20)
    ev_yield: str | None = Field(default=None, max_length=100)

    # Moves
    level_up_moves: list[dict[str, Any]] | None = Field(default=None, sa_type=JSON)
    tm_moves: list[str] | None = Field(default=None, sa_type=JSON)
    egg_moves: list[str] | None = Field(default=None, sa_type=JSON)

    # Images and art direction
    original_drawing_url: str | None = Field(default=None)
    ai_generated_image_url: str | None = Field(default=None)
    physical_appearance: str | None = Field(default=None)
    image_description: str | None = Field(default=None)

    @model_validator(mode="before")
    @classmethod
    def _complementary_gender_ratio(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return derive_gender_ratio(data)
        return data

    @field_validator("name", "evolves_from", "evolves_into", mode="before")
    @classmethod
    def _strip_names(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator(*_TAG_CHOICES, mode="before")
    @classmethod
    def _known_tag(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return None
        if not isinstance(value, str):
            return value
        text = value.strip()
        if not text:
            return None
        choices = _TAG_CHOICES[info.field_name]
        for choice in choices:
            if choice.lower() == text.lower():
                return choice
        raise ValueError(f"must be one of: {', '.join(choices)}")

    @field_validator("level_up_moves", mode="before")
    @classmethod
    def _normalize_level_up_moves(cls, value: Any) -> Any:
        if value is None:
            return None
        if not isinstance(value, list):
            return value
        moves: list[dict[str, Any]] = []
        for item in value:
            if isinstance(item, str):
                item = {"name": item}
            elif isinstance(item, BaseModel):
                item = item.model_dump()
            if isinstance(item, dict) and not str(item.get("name") or "").strip():
                continue
            moves.append(LevelUpMove.model_validate(item).model_dump())
        return moves

    @field_validator("tm_moves", "egg_moves", mode="before")
    @classmethod
    def _drop_blank_moves(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(v).strip() for v in value if v is not None and str(v).strip()]
        return value


class CreatureCreate(CreatureBase):
    pass


# Properties to receive on update, all are optional
class CreatureUpdate(CreatureBase):
    name: str | None = Field(default=None, min_length=1, max_length=100)  # type: ignore

    @field_validator("name")
    @classmethod
    def _name_cannot_be_cleared(cls, value: str | None) -> str | None:
        if value is None:
            raise ValueError("Name is required")
        return value


class Creature(CreatureBase, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID | None = Field(
        default=None, foreign_key="user.id", nullable=True, ondelete="SET NULL", index=True
    )
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    updated_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class CreaturePublic(CreatureBase):
    id: uuid.UUID
    user_id: uuid.UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    creator_username: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def display_image_url(self) -> str | None:
        return self.ai_generated_image_url or self.original_drawing_url

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_stats(self) -> int:
        return sum(getattr(self, stat) or 0 for stat in STAT_FIELDS)


class CreaturesPublic(SQLModel):
    data: list[CreaturePublic]
    count: int
