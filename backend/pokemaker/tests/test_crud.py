from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from pokemaker import crud
from pokemaker.models import CreatureCreate, CreatureUpdate, get_datetime_utc


def _create(db, owner, **fields):
    return crud.create_creature(session=db, creature_in=CreatureCreate(**fields), owner_id=owner.id)


def test_authenticate(db, user):
    assert crud.authenticate(session=db, username="ash", password="pikachu123").id == user.id
    assert crud.authenticate(session=db, username="ash", password="wrong-password") is None
    assert crud.authenticate(session=db, username="misty", password="pikachu123") is None


def test_get_by_name_is_case_insensitive_and_oldest_wins(db, user):
    first = _create(db, user, name="Twinly")
    second = _create(db, user, name="twinly")
    second.created_at = get_datetime_utc() - timedelta(days=1)
    db.add(second)
    db.commit()

    found = crud.get_creature_by_name(session=db, name="  TWINLY ")

    assert found.id == second.id
    assert found.id != first.id
    assert crud.get_creature_by_name(session=db, name="") is None


def test_list_filters_and_counts(db, user, other_user):
    _create(db, user, name="Emberling", type_primary="Fire")
    _create(db, user, name="Steamtoad", type_primary="Water", type_secondary="Fire")
    _create(db, other_user, name="Puddlepup", type_primary="Water")

    rows, count = crud.list_creatures(session=db, type_filter="Fire")
    assert count == 2
    assert {creature.name for creature, _ in rows} == {"Emberling", "Steamtoad"}

    rows, count = crud.list_creatures(session=db, owner_id=other_user.id)
    assert count == 1
    assert rows[0][1] == "gary"

    rows, count = crud.list_creatures(session=db, search="PUP")
    assert [creature.name for creature, _ in rows] == ["Puddlepup"]


def test_list_sorting_and_paging(db, user):
    _create(db, user, name="bravo", pokedex_number=2)
    _create(db, user, name="Alpha")
    _create(db, user, name="charlie", pokedex_number=1)

    rows, _ = crud.list_creatures(session=db, sort="name")
    assert [creature.name for creature, _ in rows] == ["Alpha", "bravo", "charlie"]

    rows, _ = crud.list_creatures(session=db, sort="number")
    assert [creature.name for creature, _ in rows] == ["charlie", "bravo", "Alpha"]

    rows, count = crud.list_creatures(session=db, sort="name", skip=1, limit=1)
    assert count == 3
    assert [creature.name for creature, _ in rows] == ["bravo"]


def test_update_only_touches_set_fields(db, user):
    creature = _create(db, user, name="Pebblit", type_primary="Rock", hp=30)

    updated = crud.update_creature(
        session=db,
        db_creature=creature,
        creature_in=CreatureUpdate(attack=70, type_secondary=None),
        actor_id=user.id,
    )

    assert updated.hp == 30
    assert updated.attack == 70
    assert updated.type_primary == "Rock"


def test_update_derives_female_ratio_from_stored_male(db, user):
    creature = _create(db, user, name="Duskit", gender_ratio_male=25)

    updated = crud.update_creature(
        session=db,
        db_creature=creature,
        creature_in=CreatureUpdate(gender_ratio_female=10),
        actor_id=user.id,
    )
    assert updated.gender_ratio_male == 25
    assert updated.gender_ratio_female == 75

    updated = crud.update_creature(
        session=db,
        db_creature=creature,
        creature_in=CreatureUpdate(is_genderless=True),
        actor_id=user.id,
    )
    assert updated.gender_ratio_male is None
    assert updated.gender_ratio_female is None


def test_only_owner_may_update_or_delete(db, user, other_user):
    creature = _create(db, user, name="Guarded")

    with pytest.raises(crud.CreaturePermissionError):
        crud.update_creature(
            session=db,
            db_creature=creature,
            creature_in=CreatureUpdate(hp=10),
            actor_id=other_user.id,
        )
    with pytest.raises(crud.CreaturePermissionError):
        crud.delete_creature(session=db, db_creature=creature, actor_id=other_user.id)

    crud.delete_creature(session=db, db_creature=creature, actor_id=user.id)
    assert crud.get_creature(session=db, creature_id=creature.id) is None


def test_find_or_create_by_name(db, user):
    stub = crud.find_or_create_creature_by_name(session=db, name=" Blazeling ", owner_id=user.id)
    assert stub.name == "Blazeling"
    assert stub.type_primary == "Normal"

    again = crud.find_or_create_creature_by_name(session=db, name="blazeling", owner_id=user.id)
    assert again.id == stub.id
    assert crud.find_or_create_creature_by_name(session=db, name="  ", owner_id=user.id) is None


@pytest.mark.parametrize(
    "orig, expected",
    [
        (Exception("NOT NULL constraint failed: creature.name"), "Missing required field"),
        (Exception("UNIQUE constraint failed: creature.id"), "already exists"),
        (Exception("disk I/O error"), "disk I/O error"),
    ],
)
def test_integrity_errors_become_readable(orig, expected):
    exc = IntegrityError("INSERT INTO creature ...", {}, orig)
    message = crud._integrity_message(exc, "save")
    assert message.startswith("Failed to save creature. ")
    assert expected in message
