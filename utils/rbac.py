import logging
from typing import Iterable, Optional

from django.contrib.auth import get_user_model
from django.core.exceptions import PermissionDenied

# Canonical role names
ROLE_USER = "user"
ROLE_SELLER = "seller"
ROLE_ADMIN = "admin"

logger = logging.getLogger(__name__)


def is_authenticated(user) -> bool:
    """True for a real, logged-in account (False for None and AnonymousUser)."""
    return bool(user is not None and getattr(user, "is_authenticated", False))


def _fetch_user_from_db(user):
    """Fetch a fresh copy of the user from the DB with only the fields RBAC needs.

    Returns None if the user is not authenticated or no longer exists.
    """
    if not is_authenticated(user):
        return None
    User = get_user_model()
    return User.objects.only("id", "role", "is_superuser").filter(pk=getattr(user, "pk", None)).first()


def is_admin(user) -> bool:
    """Admin check verified against the database, so a demoted admin loses access immediately."""
    db_user = _fetch_user_from_db(user)
    if not db_user:
        return False
    return bool(db_user.is_superuser or db_user.role == ROLE_ADMIN)


def has_role(user, role: str) -> bool:
    if role == ROLE_ADMIN:
        return is_admin(user)
    db_user = _fetch_user_from_db(user)
    if not db_user:
        return False
    # Admins can do everything a seller can
    if role == ROLE_SELLER:
        return db_user.role == ROLE_SELLER or is_admin(user)
    return db_user.role == role


def has_any_role(user, roles: Iterable[str]) -> bool:
    return any(has_role(user, r) for r in roles)


def require_role(user, roles: Iterable[str]):
    """Raise PermissionDenied unless the user has one of the roles."""
    roles = list(roles)
    if not has_any_role(user, roles):
        logger.warning(
            "RBAC denial: user_id=%s required=%s",
            getattr(user, "id", None),
            roles,
        )
        raise PermissionDenied("Insufficient role to access this resource.")


def require_admin(user):
    require_role(user, [ROLE_ADMIN])


def relation_to(user, buyer_id, seller_id) -> Optional[str]:
    """
    How ``user`` relates to a buyer/seller pair: "admin", "buyer", "seller" or None.

    Admin takes precedence so an operator acting on any record is always
    recorded as such.
    """
    if not is_authenticated(user):
        return None
    if is_admin(user):
        return "admin"
    if user.pk == buyer_id:
        return "buyer"
    if user.pk == seller_id:
        return "seller"
    return None
