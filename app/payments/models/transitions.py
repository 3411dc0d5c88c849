"""
Conditional persistence for django-fsm transitions.

A plain ``obj.complete(); obj.save()`` writes whatever the instance holds,
so two workers verifying the same payment would both "complete" it. Here
every transition becomes one UPDATE guarded by the transition's source
states:

    UPDATE payments_payment
       SET status = 'completed', paid_at = ..., version = version + 1
     WHERE id = ... AND status IN ('pending', 'processing')

Exactly one concurrent caller sees rows == 1. Everyone else gets False
and an instance reloaded with the state the winner wrote.

Usage:
    class Payment(ConditionalTransitionMixin, UUIDPrimaryKeyMixin, BaseModel):
        status = FSMField(...)

        @transition(field=status, source=[...], target=...)
        def complete(self, ...):
            ...

    if payment.apply_transition("complete", paid_at=now):
        send_receipt(payment)   # only the winning caller gets here
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db.models import F
from django.utils import timezone
from django_fsm import TransitionNotAllowed

if TYPE_CHECKING:
    from typing import Any


class ConditionalTransitionMixin:
    """
    Adds apply_transition() to a model with a django-fsm field.

    Attributes:
        fsm_field_name: Name of the FSMField the transitions act on
    """

    fsm_field_name = "status"

    def transition_sources(self, name: str) -> frozenset[str]:
        """Source states declared for the transition method ``name``."""
        get_all = getattr(self, f"get_all_{self.fsm_field_name}_transitions")
        return frozenset(
            transition.source
            for transition in get_all()
            if transition.name == name
        )

    def apply_transition(self, name: str, **kwargs: Any) -> bool:
        """
        Run transition ``name`` and persist it with one conditional UPDATE.

        Args:
            name: Transition method name (e.g. "complete")
            **kwargs: Passed through to the transition method

        Returns:
            True if this call moved the row. False if the row was already
            outside the transition's source states; the instance is then
            reloaded from the database and nothing was written.
        """
        sources = self.transition_sources(name)
        if not sources:
            raise ValueError(f"{type(self).__name__} has no transition {name!r}")

        if getattr(self, self.fsm_field_name) not in sources:
            # The instance may be stale (e.g. after a rolled back transaction)
            self.refresh_from_db()

        fields = self._meta.concrete_fields
        before = {field.attname: getattr(self, field.attname) for field in fields}

        try:
            getattr(self, name)(**kwargs)
        except TransitionNotAllowed:
            return False

        changes = {
            field.attname: getattr(self, field.attname)
            for field in fields
            if getattr(self, field.attname) != before[field.attname]
        }
        now = timezone.now()
        if any(field.name == "updated_at" for field in fields):
            changes["updated_at"] = now
        if any(field.name == "version" for field in fields):
            changes["version"] = F("version") + 1

        rows = (
            type(self)
            ._default_manager.filter(
                pk=self.pk,
                **{f"{self.fsm_field_name}__in": sources},
            )
            .update(**changes)
        )

        if rows == 0:
            self.refresh_from_db()
            return False

        refreshed = [field_name for field_name in ("version", "updated_at") if field_name in changes]
        if refreshed:
            self.refresh_from_db(fields=refreshed)
        return True


__all__ = ["ConditionalTransitionMixin"]
