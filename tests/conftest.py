"""Pytest fixtures for storefront tests."""

import asyncio
import uuid

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from storefront.auth import actor_from_user
from storefront.config import Config
from storefront.database import ConnectionManager, create_document, get_db
from storefront.main import create_app
from storefront.security import create_access_token
from storefront.settings_cache import SettingsCache


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def db():
    """A fresh in-memory database per test."""
    return AsyncMongoMockClient()[f"storefront_{uuid.uuid4().hex[:8]}"]


@pytest.fixture
def settings():
    return SettingsCache(ttl=60, default_currency="USD")


@pytest.fixture
def app(db):
    app = create_app(
        config=Config(),
        db_manager=ConnectionManager("mongodb://unused", "unused", client_factory=lambda url: AsyncMongoMockClient()),
    )
    app.dependency_overrides[get_db] = lambda: db
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


class Seeder:
    """Inserts documents straight into the test database."""

    def __init__(self, db):
        self.db = db
        self._n = 0

    def _next(self) -> int:
        self._n += 1
        return self._n

    def insert(self, collection: str, doc: dict) -> dict:
        run(create_document(self.db, collection, doc))
        return doc

    def user(self, role="user", name=None, email=None, password="", **extra):
        n = self._next()
        doc = {
            "name": name or f"User {n}",
            "email": email or f"user{n}@example.com",
            "password": password,
            "role": role,
            "status": "active",
            "isActive": True,
            "avatar": "",
        }
        doc.update(extra)
        return self.insert("users", doc)

    def category(self, name=None):
        return self.insert("categories", {"name": name or f"Category {self._next()}", "isActive": True})

    def product(self, price=10.0, name=None, is_active=True, category=None):
        category = category or self.category()
        return self.insert(
            "products",
            {
                "name": name or f"Product {self._next()}",
                "description": "Test product",
                "price": price,
                "category": category["_id"],
                "stock": 10,
                "images": [],
                "primaryImage": "",
                "isActive": is_active,
            },
        )

    def location(self, governorate_name="Cairo", city_name="Nasr City"):
        governorate = self.insert(
            "governorates",
            {"name": governorate_name, "nameAr": governorate_name, "code": governorate_name[:3].upper(),
             "status": "active", "isActive": True},
        )
        city = self.insert(
            "cities",
            {"name": city_name, "nameAr": city_name, "code": city_name[:3].upper(), "status": "active",
             "governorate": governorate["_id"], "isActive": True},
        )
        return governorate, city

    def address(self, user, is_default=False, **extra):
        doc = {
            "user": user["_id"],
            "fullName": user["name"],
            "phone": "+201000000000",
            "line1": "1 Main St",
            "line2": "",
            "city": "Nasr City",
            "governorate": "Cairo",
            "postalCode": "11765",
            "country": "EG",
            "isDefault": is_default,
            "isActive": True,
        }
        doc.update(extra)
        return self.insert("addresses", doc)


@pytest.fixture
def seed(db):
    return Seeder(db)


def auth_headers(user: dict) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(user['_id']), user['role'])}"}


def actor(user: dict):
    return actor_from_user(user)
