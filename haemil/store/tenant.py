"""Context-carried tenant identifier for tenant-scoped storage."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar


class MissingTenantError(LookupError):
    """Raised when no (or an empty) tenant id is set in the current context."""

    def __init__(self, message: str = "store: tenant id missing from context") -> None:
        super().__init__(message)


_tenant_id: ContextVar[str] = ContextVar("haemil_tenant_id")


@contextmanager
def with_tenant_id(tenant_id: str) -> Iterator[str]:
    """Tag the current context with ``tenant_id`` for the duration of the block.

    Blocks nest: an inner tenant shadows the outer one until it exits. An
    empty id may be set; it is rejected when read.
    """
    token = _tenant_id.set(tenant_id)
    try:
        yield tenant_id
    finally:
        _tenant_id.reset(token)


def tenant_id_from_context() -> str:
    """Return the tenant id of the current context.

    Raises MissingTenantError when none is set or it is empty.
    """
    tenant_id = _tenant_id.get(None)
    if not isinstance(tenant_id, str) or tenant_id == "":
        raise MissingTenantError()
    return tenant_id


def must_tenant_id_from_context() -> str:
    """Like tenant_id_from_context, for code that runs only inside a tenant scope.

    A missing tenant here is a programming error and raises RuntimeError.
    """
    try:
        return tenant_id_from_context()
    except MissingTenantError as err:
        raise RuntimeError(str(err)) from err