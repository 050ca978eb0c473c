"""Tests for the shop settings cache."""

import pytest

from conftest import auth_headers, run
from storefront.errors import InvalidInput
from storefront.settings_cache import SETTINGS_ID, SettingsCache, normalize_currency


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


def test_first_read_seeds_default(db, clock):
    cache = SettingsCache(ttl=60, default_currency="usd", clock=clock)
    assert run(cache.get_currency(db)) == "USD"
    assert run(db["settings"].find_one({"_id": SETTINGS_ID}))["currency"] == "USD"
    assert cache.loaded_at == 100.0


def test_value_is_served_until_ttl_expires(db, clock):
    cache = SettingsCache(ttl=60, clock=clock)
    run(cache.get_currency(db))
    run(db["settings"].update_one({"_id": SETTINGS_ID}, {"$set": {"currency": "EGP"}}))

    clock.now += 59
    assert run(cache.get_currency(db)) == "USD"
    clock.now += 2
    assert run(cache.get_currency(db)) == "EGP"


def test_set_currency_refreshes_immediately(db, clock):
    cache = SettingsCache(ttl=60, clock=clock)
    run(cache.get_currency(db))
    assert run(cache.set_currency(db, " eur ")) == "EUR"
    assert run(cache.get_currency(db)) == "EUR"


def test_invalidate(db, clock):
    cache = SettingsCache(ttl=60, clock=clock)
    run(cache.get_currency(db))
    run(db["settings"].update_one({"_id": SETTINGS_ID}, {"$set": {"currency": "GBP"}}))
    cache.invalidate()
    assert run(cache.get_currency(db)) == "GBP"


@pytest.mark.parametrize("value", [None, "", "EU", "EURO", "12$"])
def test_normalize_rejects(value):
    with pytest.raises(InvalidInput):
        normalize_currency(value)


def test_routes(client, seed):
    assert client.get("/api/settings").json()["data"] == {"currency": "USD"}

    user = seed.user()
    response = client.put("/api/settings/currency", json={"currency": "EGP"}, headers=auth_headers(user))
    assert response.status_code == 403

    manager = seed.user(role="manager")
    response = client.put("/api/settings/currency", json={"currency": "egp"}, headers=auth_headers(manager))
    assert response.json()["data"] == {"currency": "EGP"}
    assert client.get("/api/settings").json()["data"] == {"currency": "EGP"}
