"""Tests for the address book."""

from bson import ObjectId

from conftest import auth_headers, run


def address_payload(governorate, city, **extra):
    payload = {
        "phone": "+201000000000",
        "line1": "10 Nile St",
        "cityId": str(city["_id"]),
        "governorateId": str(governorate["_id"]),
        "country": "eg",
    }
    payload.update(extra)
    return payload


def test_create_resolves_location_names(client, seed):
    user = seed.user(name="Mona")
    governorate, city = seed.location()
    response = client.post("/api/addresses", json=address_payload(governorate, city), headers=auth_headers(user))
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["city"] == "Nasr City"
    assert data["governorate"] == "Cairo"
    assert data["country"] == "EG"
    assert data["fullName"] == "Mona"


def test_city_must_belong_to_governorate(client, seed):
    user = seed.user()
    governorate, _ = seed.location()
    _, foreign_city = seed.location("Giza", "Dokki")
    response = client.post(
        "/api/addresses", json=address_payload(governorate, foreign_city), headers=auth_headers(user)
    )
    assert response.status_code == 400


def test_single_default(client, db, seed):
    user = seed.user()
    governorate, city = seed.location()
    headers = auth_headers(user)
    first = client.post(
        "/api/addresses", json=address_payload(governorate, city, isDefault=True), headers=headers
    ).json()["data"]
    second = client.post(
        "/api/addresses", json=address_payload(governorate, city, isDefault=True), headers=headers
    ).json()["data"]

    defaults = run(db["addresses"].count_documents({"user": user["_id"], "isDefault": True, "isActive": True}))
    assert defaults == 1

    client.post(f"/api/addresses/{first['id']}/default", headers=headers)
    listing = client.get("/api/addresses", headers=headers).json()["data"]
    assert listing[0]["id"] == first["id"]
    assert [a["isDefault"] for a in listing] == [True, False]
    assert second["id"] in {a["id"] for a in listing}


def test_owner_scoping(client, seed):
    owner = seed.user()
    stranger = seed.user()
    address = seed.address(owner)
    assert client.get(f"/api/addresses/{address['_id']}", headers=auth_headers(stranger)).status_code == 404
    assert client.get(f"/api/addresses/{address['_id']}", headers=auth_headers(owner)).status_code == 200


def test_update_and_soft_delete(client, db, seed):
    user = seed.user()
    address = seed.address(user)
    headers = auth_headers(user)

    response = client.put(f"/api/addresses/{address['_id']}", json={"line2": "Flat 4"}, headers=headers)
    assert response.json()["data"]["line2"] == "Flat 4"

    assert client.delete(f"/api/addresses/{address['_id']}", headers=headers).status_code == 200
    assert client.get(f"/api/addresses/{address['_id']}", headers=headers).status_code == 404
    assert run(db["addresses"].find_one({"_id": address["_id"]}))["isActive"] is False


def test_unknown_address(client, seed):
    response = client.get(f"/api/addresses/{ObjectId()}", headers=auth_headers(seed.user()))
    assert response.status_code == 404
