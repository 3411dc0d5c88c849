"""
Permission classes for payments API.

- IsParentOrStaff: the request acts for the parent that owns the resource

Parents are not Django users here. An access token carries the id of the
parent it acts for in the PAYMENTS_PARENT_ID_CLAIM claim; staff users pass
every check without one.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from django.conf import settings
from rest_framework import permissions

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView


def token_parent_id(request: Request) -> str | None:
    """The parent id claim of the request's token, normalised, or None."""
    token = request.auth
    if token is None or not hasattr(token, "get"):
        return None

    claim = token.get(settings.PAYMENTS_PARENT_ID_CLAIM)
    if not claim:
        return None
    try:
        return str(uuid.UUID(str(claim)))
    except ValueError:
        return None


def acts_for_parent(request: Request, parent_id: Any) -> bool:
    """True for staff, or when the token's parent claim is parent_id."""
    if request.user.is_staff:
        return True
    claimed = token_parent_id(request)
    return claimed is not None and claimed == str(parent_id)


class IsParentOrStaff(permissions.BasePermission):
    """
    Allows access to the owning parent and to staff.

    View-level: a ``parent_id`` URL kwarg must match the token's parent.
    Object-level: the object's ``parent_id`` must match. Views without
    either are left to their object checks.
    """

    message = "You do not have access to this parent's payments."

    def has_permission(self, request: Request, view: APIView) -> bool:
        if not request.user.is_authenticated:
            return False

        parent_id = view.kwargs.get("parent_id")
        if parent_id is None:
            return True
        return acts_for_parent(request, parent_id)

    def has_object_permission(self, request: Request, view: APIView, obj) -> bool:
        return acts_for_parent(request, obj.parent_id)
