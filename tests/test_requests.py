"""Tests for support tickets under /api/requests."""

from conftest import auth_headers, run


def open_request(client, user, title="Broken kettle", **extra):
    return client.post("/api/requests", json={"title": title, **extra}, headers=auth_headers(user))


class TestRequests:
    def test_create_defaults(self, client, seed):
        user = seed.user()
        response = open_request(client, user, description="It leaks")
        assert response.status_code == 201
        ticket = response.json()["data"]
        assert ticket["status"] == "open"
        assert ticket["priority"] == "medium"
        assert ticket["user"] == str(user["_id"])

    def test_validation(self, client, seed):
        user = seed.user()
        assert open_request(client, user, title="").status_code == 400
        assert open_request(client, user, title="x" * 121).status_code == 400
        assert open_request(client, user, priority="whenever").status_code == 400

    def test_requires_auth(self, client):
        assert client.post("/api/requests", json={"title": "Help"}).status_code == 401

    def test_listing_is_scoped_to_owner(self, client, seed):
        alice = seed.user()
        bob = seed.user()
        manager = seed.user(role="manager")
        open_request(client, alice, title="Late delivery")
        open_request(client, bob, title="Wrong size", priority="high")

        mine = client.get("/api/requests", headers=auth_headers(alice)).json()
        assert [t["title"] for t in mine["data"]] == ["Late delivery"]
        assert mine["data"][0]["user"]["email"] == alice["email"]

        everything = client.get("/api/requests", headers=auth_headers(manager)).json()
        assert everything["pagination"]["total"] == 2

        found = client.get("/api/requests?search=SIZE", headers=auth_headers(manager)).json()
        assert [t["title"] for t in found["data"]] == ["Wrong size"]

    def test_read_is_owner_or_elevated(self, client, seed):
        owner = seed.user()
        ticket = open_request(client, owner).json()["data"]
        url = f"/api/requests/{ticket['id']}"
        assert client.get(url, headers=auth_headers(owner)).status_code == 200
        assert client.get(url, headers=auth_headers(seed.user())).status_code == 403
        assert client.get(url, headers=auth_headers(seed.user(role="admin"))).status_code == 200

    def test_only_elevated_change_status(self, client, seed):
        owner = seed.user()
        manager = seed.user(role="manager")
        ticket = open_request(client, owner).json()["data"]
        url = f"/api/requests/{ticket['id']}"

        response = client.put(url, json={"status": "resolved"}, headers=auth_headers(owner))
        assert response.status_code == 403
        assert response.json()["error"] == "Only admin/manager can update status"

        response = client.put(url, json={"priority": "urgent"}, headers=auth_headers(owner))
        assert response.json()["data"]["priority"] == "urgent"

        response = client.put(url, json={"status": "in_progress"}, headers=auth_headers(manager))
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "in_progress"

    def test_owner_deletes_only_open_tickets(self, client, db, seed):
        owner = seed.user()
        admin = seed.user(role="admin")
        first = open_request(client, owner).json()["data"]
        second = open_request(client, owner, title="Another").json()["data"]
        client.put(f"/api/requests/{second['id']}", json={"status": "closed"}, headers=auth_headers(admin))

        assert client.delete(f"/api/requests/{first['id']}", headers=auth_headers(owner)).status_code == 200
        assert client.get(f"/api/requests/{first['id']}", headers=auth_headers(owner)).status_code == 404

        response = client.delete(f"/api/requests/{second['id']}", headers=auth_headers(owner))
        assert response.status_code == 400
        assert response.json()["error"] == "Only open requests can be deleted by owner"

        assert client.delete(f"/api/requests/{second['id']}", headers=auth_headers(admin)).status_code == 200
        assert run(db["requests"].count_documents({"isActive": False})) == 2
