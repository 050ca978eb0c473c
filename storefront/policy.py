"""
Access policy

Every handler asks the same question, ``can_access(actor, resource, action)``,
instead of repeating role and ownership checks inline. Rules are keyed by
``(resource, action)``; anything without a rule is denied.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from .errors import Forbidden

ELEVATED_ROLES = frozenset({"manager", "admin"})
ROLES = ("customer", "user", "manager", "admin")


@dataclass(frozen=True)
class Actor:
    id: str
    role: str
    name: str = ""
    email: str = ""

    @property
    def is_elevated(self) -> bool:
        return self.role in ELEVATED_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def _owns(actor: Actor, owner_id: Any) -> bool:
    return owner_id is not None and str(owner_id) == actor.id


def _elevated(actor, owner_id):
    return actor.is_elevated


def _admin(actor, owner_id):
    return actor.is_admin


def _owner(actor, owner_id):
    return _owns(actor, owner_id)


def _owner_or_elevated(actor, owner_id):
    return actor.is_elevated or _owns(actor, owner_id)


def _owner_or_admin(actor, owner_id):
    return actor.is_admin or _owns(actor, owner_id)


def _authenticated(actor, owner_id):
    return True


Rule = Callable[[Actor, Any], bool]

RULES: Dict[Tuple[str, str], Rule] = {
    ("cart", "use"): _authenticated,
    ("cart", "list_all"): _elevated,
    ("cart", "act_for_other"): _elevated,
    ("order", "create"): _authenticated,
    ("order", "create_for_other"): _elevated,
    ("order", "read"): _owner_or_elevated,
    ("order", "list_all"): _elevated,
    ("order", "read_inactive"): _elevated,
    ("order", "cancel"): _owner,
    ("order", "update_status"): _elevated,
    ("order", "delete"): _elevated,
    ("stats", "read"): _elevated,
    ("settings", "write"): _elevated,
    ("catalog", "write"): _elevated,
    ("location", "write"): _elevated,
    ("user", "manage"): _admin,
    ("address", "use"): _authenticated,
    ("review", "create"): _authenticated,
    ("review", "update"): _owner_or_admin,
    ("review", "delete"): _owner_or_admin,
    ("review", "purge"): _admin,
    ("wishlist", "use"): _authenticated,
    ("request", "create"): _authenticated,
    ("request", "read"): _owner_or_elevated,
    ("request", "update"): _owner_or_elevated,
    ("request", "set_status"): _elevated,
    ("request", "delete"): _owner_or_elevated,
    ("request", "list_all"): _elevated,
}


def can_access(actor: Optional[Actor], resource: str, action: str, owner_id: Any = None) -> bool:
    """Return True when ``actor`` may perform ``action`` on ``resource``.

    ``owner_id`` is the owning user of the concrete document, when the rule
    depends on ownership.
    """
    if actor is None:
        return False
    rule = RULES.get((resource, action))
    if rule is None:
        return False
    return bool(rule(actor, owner_id))


def require(actor: Optional[Actor], resource: str, action: str, owner_id: Any = None) -> None:
    if not can_access(actor, resource, action, owner_id):
        raise Forbidden()
