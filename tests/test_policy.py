"""Tests for the access policy table."""

import pytest
from bson import ObjectId

from storefront.errors import Forbidden
from storefront.policy import Actor, can_access, require

OWNER = str(ObjectId())

customer = Actor(id=OWNER, role="customer")
other = Actor(id=str(ObjectId()), role="user")
manager = Actor(id=str(ObjectId()), role="manager")
admin = Actor(id=str(ObjectId()), role="admin")


@pytest.mark.parametrize(
    "actor, allowed",
    [(customer, True), (other, False), (manager, True), (admin, True)],
)
def test_order_read(actor, allowed):
    assert can_access(actor, "order", "read", ObjectId(OWNER)) is allowed


@pytest.mark.parametrize(
    "actor, allowed",
    [(customer, True), (other, False), (manager, False), (admin, False)],
)
def test_only_owner_cancels(actor, allowed):
    assert can_access(actor, "order", "cancel", OWNER) is allowed


def test_review_moderation_is_admin_only():
    assert can_access(admin, "review", "delete", OWNER)
    assert not can_access(manager, "review", "delete", OWNER)
    assert can_access(customer, "review", "delete", OWNER)
    assert not can_access(manager, "review", "purge")


def test_elevated_rules():
    for resource, action in [("stats", "read"), ("settings", "write"), ("order", "update_status")]:
        assert can_access(manager, resource, action)
        assert not can_access(customer, resource, action)


def test_user_management_is_admin_only():
    assert can_access(admin, "user", "manage")
    assert not can_access(manager, "user", "manage")


def test_anonymous_and_unknown_rules_are_denied():
    assert not can_access(None, "cart", "use")
    assert not can_access(admin, "cart", "explode")


def test_require_raises():
    with pytest.raises(Forbidden):
        require(other, "order", "read", OWNER)
    require(customer, "order", "read", OWNER)


def test_actor_flags():
    assert manager.is_elevated and not manager.is_admin
    assert admin.is_elevated and admin.is_admin
    assert not customer.is_elevated


@pytest.mark.parametrize(
    "actor, allowed",
    [(customer, True), (other, False), (manager, True), (admin, True)],
)
def test_request_owner_or_elevated(actor, allowed):
    for action in ("read", "update", "delete"):
        assert can_access(actor, "request", action, OWNER) is allowed


def test_request_status_is_elevated_only():
    assert can_access(manager, "request", "set_status")
    assert can_access(admin, "request", "list_all")
    assert not can_access(customer, "request", "set_status", OWNER)
    assert can_access(other, "request", "create")
