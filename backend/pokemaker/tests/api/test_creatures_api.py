from pokemaker.core.config import settings

CREATURES = f"{settings.API_V1_STR}/creatures"


def _create(client, headers, **fields):
    r = client.post(f"{CREATURES}/", headers=headers, json=fields)
    assert r.status_code == 200, r.text
    return r.json()


def test_create_and_read_creature(client, user_headers):
    created = _create(
        client,
        user_headers,
        name="Emberling",
        type_primary="fire",
        hp=39,
        attack=52,
        gender_ratio_male=87.5,
        gender_ratio_female=50,
    )

    assert created["type_primary"] == "Fire"
    assert created["gender_ratio_female"] == 12.5
    assert created["total_stats"] == 91
    assert created["creator_username"] == "ash"

    r = client.get(f"{CREATURES}/{created['id']}", headers=user_headers)
    assert r.status_code == 200
    assert r.json()["name"] == "Emberling"

    r = client.get(f"{CREATURES}/by-name/EMBERLING", headers=user_headers)
    assert r.status_code == 200
    assert r.json()["id"] == created["id"]


def test_create_without_name_is_a_field_error(client, user_headers):
    r = client.post(f"{CREATURES}/", headers=user_headers, json={"type_primary": "Fire"})
    assert r.status_code == 422
    assert r.json()["detail"][0]["loc"] == ["body", "name"]


def test_missing_creature_is_404(client, user_headers):
    r = client.get(f"{CREATURES}/00000000-0000-0000-0000-000000000000", headers=user_headers)
    assert r.status_code == 404
    r = client.get(f"{CREATURES}/by-name/Nobody", headers=user_headers)
    assert r.status_code == 404


def test_gallery_filters(client, user_headers, other_headers):
    _create(client, user_headers, name="Emberling", type_primary="Fire")
    _create(client, user_headers, name="Puddlepup", type_primary="Water")
    _create(client, other_headers, name="Cinderat", type_primary="Fire")

    r = client.get(f"{CREATURES}/", headers=user_headers, params={"type": "Fire"})
    assert r.json()["count"] == 2

    r = client.get(f"{CREATURES}/", headers=user_headers, params={"mine": True, "sort": "name"})
    assert [c["name"] for c in r.json()["data"]] == ["Emberling", "Puddlepup"]

    r = client.get(f"{CREATURES}/", headers=user_headers, params={"q": "rat"})
    body = r.json()
    assert body["count"] == 1
    assert body["data"][0]["creator_username"] == "gary"

    assert client.get(f"{CREATURES}/", headers=user_headers, params={"type": "Plasma"}).status_code == 422
    assert client.get(f"{CREATURES}/", headers=user_headers, params={"sort": "random"}).status_code == 422


def test_patch_is_partial_and_owner_only(client, user_headers, other_headers):
    created = _create(client, user_headers, name="Pebblit", type_primary="Rock", hp=40)

    r = client.patch(f"{CREATURES}/{created['id']}", headers=user_headers, json={"defense": 90})
    assert r.status_code == 200
    assert r.json()["hp"] == 40
    assert r.json()["defense"] == 90

    r = client.patch(f"{CREATURES}/{created['id']}", headers=user_headers, json={"name": None})
    assert r.status_code == 422

    r = client.patch(f"{CREATURES}/{created['id']}", headers=other_headers, json={"hp": 1})
    assert r.status_code == 403


def test_patch_gender_ratio_respects_stored_genderless_flag(client, user_headers):
    created = _create(client, user_headers, name="Voidling", is_genderless=True)

    r = client.patch(
        f"{CREATURES}/{created['id']}", headers=user_headers, json={"gender_ratio_male": 30}
    )
    assert r.status_code == 200
    body = r.json()
    assert body["is_genderless"] is True
    assert body["gender_ratio_male"] is None
    assert body["gender_ratio_female"] is None

    r = client.patch(
        f"{CREATURES}/{created['id']}",
        headers=user_headers,
        json={"is_genderless": False, "gender_ratio_male": 30},
    )
    body = r.json()
    assert body["is_genderless"] is False
    assert body["gender_ratio_male"] == 30
    assert body["gender_ratio_female"] == 70

    r = client.patch(f"{CREATURES}/{created['id']}", headers=user_headers, json={"is_genderless": True})
    body = r.json()
    assert body["gender_ratio_male"] is None
    assert body["gender_ratio_female"] is None


def test_delete_is_owner_only(client, user_headers, other_headers):
    created = _create(client, user_headers, name="Fleeting")

    r = client.delete(f"{CREATURES}/{created['id']}", headers=other_headers)
    assert r.status_code == 403

    r = client.delete(f"{CREATURES}/{created['id']}", headers=user_headers)
    assert r.status_code == 200
    assert client.get(f"{CREATURES}/{created['id']}", headers=user_headers).status_code == 404


def test_create_emits_saved_event(client, user_headers, hooks):
    seen = []

    async def record(event):
        seen.append((event.name, event.evolves_into, event.source))

    hooks.subscribe(record)
    _create(client, user_headers, name="Emberling", evolves_into="Blazeling")
    client.portal.call(hooks.drain)

    assert seen == [("Emberling", "Blazeling", "api")]
