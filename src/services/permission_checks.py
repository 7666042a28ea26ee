"""
Permission checks for package verification and import.

The engine does not authenticate anyone: callers pass an AccessPolicy that
answers permission questions, and these helpers turn a "no" into a
PermissionDenied naming every locale that failed, before any database write.

Usage:
    policy = StaticAccessPolicy(
        permissions={"import-package", "locales"},
        locale_permissions={"en_GB": {"food-list", "food-list:edit"}},
    )
    check_edit_food_list_permissions(policy, ["en_GB"])
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Protocol, Set

from src.services.exceptions import PermissionDenied
from src.utils.constants import (
    PERMISSION_FOOD_LIST,
    PERMISSION_FOOD_LIST_EDIT,
    PERMISSION_LOCALES,
    PERMISSION_LOCALES_CREATE,
)


class AccessPolicy(Protocol):
    """Answers permission questions for the current caller."""

    def has_permission(self, *permissions: str) -> bool:
        """True when the caller holds every listed global permission."""
        ...

    def has_locale_permission(self, locale_id: str, permission: str) -> bool:
        """True when the caller holds the permission for one locale."""
        ...


@dataclass
class StaticAccessPolicy:
    """
    AccessPolicy backed by fixed permission sets.

    Attributes:
        permissions: Global permissions
        locale_permissions: {locale code: permissions granted for that locale}
        allow_everything: Grant every permission (command-line use, tests)
    """

    permissions: Set[str] = field(default_factory=set)
    locale_permissions: Dict[str, Set[str]] = field(default_factory=dict)
    allow_everything: bool = False

    @classmethod
    def allow_all(cls) -> "StaticAccessPolicy":
        return cls(allow_everything=True)

    def has_permission(self, *permissions: str) -> bool:
        if self.allow_everything:
            return True
        return all(permission in self.permissions for permission in permissions)

    def has_locale_permission(self, locale_id: str, permission: str) -> bool:
        if self.allow_everything:
            return True
        return permission in self.locale_permissions.get(locale_id, set())


def check_permission(policy: AccessPolicy, permission: str) -> None:
    """Require one global permission."""
    if not policy.has_permission(permission):
        raise PermissionDenied(permission)


def _check_locale_permission(policy: AccessPolicy, locale_ids: Iterable[str], permission: str) -> None:
    denied = sorted(
        {locale_id for locale_id in locale_ids if not policy.has_locale_permission(locale_id, permission)}
    )
    if denied:
        raise PermissionDenied(permission, denied)


def check_food_list_permissions(policy: AccessPolicy, locale_ids: Iterable[str]) -> None:
    """Require read access to the food list of every locale."""
    _check_locale_permission(policy, locale_ids, PERMISSION_FOOD_LIST)


def check_edit_food_list_permissions(policy: AccessPolicy, locale_ids: Iterable[str]) -> None:
    """Require read and edit access to the food list of every locale."""
    locale_ids = list(locale_ids)
    check_food_list_permissions(policy, locale_ids)
    _check_locale_permission(policy, locale_ids, PERMISSION_FOOD_LIST_EDIT)


def check_global_locale_permissions(policy: AccessPolicy, include_create: bool = False) -> None:
    """Require the locales permission, plus locales:create when locales may be created."""
    check_permission(policy, PERMISSION_LOCALES)
    if include_create:
        check_permission(policy, PERMISSION_LOCALES_CREATE)
