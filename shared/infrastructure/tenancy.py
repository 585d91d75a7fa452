"""
Tenant isolation.

Every tenant-owned table is reachable only through the property that is
active for the current execution context (request, task or unit of
work). The active property lives in a ``ContextVar`` so concurrent
requests and async tasks never observe each other's scope.

Three layers enforce the scope:

* ``TenantScopedManager`` is the default manager of every tenant model
  and filters reads by the active property. With no property active it
  filters by an id that can never exist, so reads fail closed.
* ``TenantScopedModel.save``/``delete`` refuse writes for rows owned by
  another property, or when no property is active.
* On PostgreSQL the unit of work publishes the active property to the
  session (``app.current_property_id``) and row-level security policies
  installed by ``apps.bookings`` migrations filter every statement.

``privileged()`` opens the separate maintenance path used by fixtures,
onboarding and periodic sweeps. Queries issued inside it are routed to
``settings.MAINTENANCE_DB_ALIAS`` by ``PrivilegedRouter`` and skip the
manager filter. It is never entered by the request-serving code.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Iterator, Optional

import structlog
from django.conf import settings
from django.db import DEFAULT_DB_ALIAS, connections, models

from shared.domain.exceptions import TenantMismatch, ValidationFailed

logger = structlog.get_logger(__name__)

# No property row ever has this id, so a missing scope matches nothing.
NO_TENANT_ID = 0

TENANT_SETTING_NAME = "app.current_property_id"

_current_property_id: ContextVar[Optional[int]] = ContextVar("current_property_id", default=None)
_privileged: ContextVar[bool] = ContextVar("tenant_privileged", default=False)


def get_current_property_id() -> Optional[int]:
    return _current_property_id.get()


def is_privileged() -> bool:
    return _privileged.get()


def _coerce_property_id(property_id) -> int:
    if isinstance(property_id, bool):
        raise ValidationFailed("property_id must be a positive integer", property_id=property_id)
    try:
        value = int(property_id)
    except (TypeError, ValueError):
        raise ValidationFailed("property_id must be a positive integer", property_id=property_id)
    if value <= 0:
        raise ValidationFailed("property_id must be a positive integer", property_id=property_id)
    return value


def set_tenant_context(property_id) -> Token:
    """
    Make ``property_id`` the active tenant for the current context.

    Returns the token to hand back to ``clear_tenant_context`` so nested
    scopes restore the outer one.
    """
    value = _coerce_property_id(property_id)
    current = _current_property_id.get()
    if current is not None and current != value:
        raise TenantMismatch(
            "A different property is already active",
            active_property_id=current,
            requested_property_id=value,
        )
    logger.debug("tenant_context_set", property_id=value)
    return _current_property_id.set(value)


def clear_tenant_context(token: Optional[Token] = None) -> None:
    if token is not None:
        _current_property_id.reset(token)
    else:
        _current_property_id.set(None)


@contextmanager
def tenant_context(property_id) -> Iterator[int]:
    token = set_tenant_context(property_id)
    try:
        yield _current_property_id.get()
    finally:
        clear_tenant_context(token)


@contextmanager
def privileged() -> Iterator[None]:
    """Maintenance scope: no tenant filter, queries go to the maintenance alias"""
    token = _privileged.set(True)
    try:
        yield
    finally:
        _privileged.reset(token)


def apply_tenant_setting(property_id: Optional[int], using: str = DEFAULT_DB_ALIAS) -> None:
    """
    Publish ``property_id`` to the row-level security policies.

    Inside a transaction the setting ends with it; in autocommit mode it
    stays on the session until cleared with ``property_id=None``.
    """
    connection = connections[using]
    if connection.vendor != "postgresql":
        return
    value = "" if property_id is None else str(property_id)
    with connection.cursor() as cursor:
        cursor.execute(
            "SELECT set_config(%s, %s, %s)",
            [TENANT_SETTING_NAME, value, connection.in_atomic_block],
        )


def ensure_tenant_access(property_id: Optional[int]) -> None:
    """Raise ``TenantMismatch`` unless ``property_id`` is the active tenant"""
    if is_privileged():
        return
    current = get_current_property_id()
    if current is None:
        raise TenantMismatch("No property is active for this operation")
    if property_id != current:
        logger.warning(
            "tenant_mismatch",
            active_property_id=current,
            row_property_id=property_id,
        )
        raise TenantMismatch(
            active_property_id=current,
            requested_property_id=property_id,
        )


class TenantScopedManager(models.Manager):
    """Default manager that only returns rows of the active property"""

    def get_queryset(self):
        queryset = super().get_queryset()
        if is_privileged():
            return queryset
        property_id = get_current_property_id() or NO_TENANT_ID
        return queryset.filter(**{self.model.tenant_lookup: property_id})


class TenantScopedModel(models.Model):
    """
    Abstract base for tenant-owned rows.

    ``tenant_lookup`` is the ORM path from the row to its property id,
    e.g. ``"property_id"`` or ``"booking__property_id"``.
    """

    tenant_lookup = "property_id"

    objects = TenantScopedManager()
    unscoped = models.Manager()

    class Meta:
        abstract = True

    def get_tenant_property_id(self) -> Optional[int]:
        target = self
        *path, attname = self.tenant_lookup.split("__")
        for name in path:
            target = getattr(target, name)
            if target is None:
                return None
        if attname == "id":
            return target.pk
        return getattr(target, attname)

    def save(self, *args, **kwargs):
        ensure_tenant_access(self.get_tenant_property_id())
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        ensure_tenant_access(self.get_tenant_property_id())
        return super().delete(*args, **kwargs)


class PrivilegedRouter:
    """Route queries issued inside ``privileged()`` to the maintenance alias"""

    def _route(self):
        if is_privileged():
            return getattr(settings, "MAINTENANCE_DB_ALIAS", None)
        return None

    def db_for_read(self, model, **hints):
        return self._route()

    def db_for_write(self, model, **hints):
        return self._route()

    def allow_relation(self, obj1, obj2, **hints):
        # Both aliases point at the same physical database.
        aliases = {DEFAULT_DB_ALIAS, getattr(settings, "MAINTENANCE_DB_ALIAS", DEFAULT_DB_ALIAS)}
        if {obj1._state.db, obj2._state.db} <= aliases:
            return True
        return None
