"""
clinic_agent/tool_definitions/context.py
========================================

Per-call state shared by the tool functions.

Toolkit
-------
One ``Toolkit`` (store + engines) per process, created lazily from the
environment on first use.  ``set_toolkit`` replaces it, which is how tests
and embedding applications inject their own store.

Tenant
------
The tenant id is *not* a tool argument: the model must never be able to
choose it.  The dispatcher binds the caller's tenant with ``tenant_scope``
for the duration of one tool call, and the tool functions read it with
``current_tenant()``.  A ``ContextVar`` keeps concurrent requests (separate
asyncio tasks) isolated from each other.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

from ..config import Config
from ..tools.toolkit import Toolkit

_toolkit: Optional[Toolkit] = None
_tenant: ContextVar[Optional[str]] = ContextVar("clinic_agent_tenant", default=None)


class TenantNotBoundError(RuntimeError):
    """A tool ran outside ``tenant_scope``."""


def get_toolkit() -> Toolkit:
    """Return the shared Toolkit instance, creating it on first call."""
    global _toolkit
    if _toolkit is None:
        _toolkit = Toolkit(Config.from_env())
    return _toolkit


def set_toolkit(toolkit: Optional[Toolkit]) -> None:
    """Install ``toolkit`` (or ``None`` to fall back to lazy creation)."""
    global _toolkit
    _toolkit = toolkit


def close_toolkit() -> None:
    """Close the shared toolkit (if one was created) and forget it."""
    global _toolkit
    if _toolkit is not None:
        _toolkit.close()
        _toolkit = None


@contextmanager
def tenant_scope(tenant_id: str) -> Iterator[str]:
    """Bind ``tenant_id`` for every tool call made inside the block."""
    if not tenant_id:
        raise TenantNotBoundError("tenant_id must be a non-empty string")
    token = _tenant.set(tenant_id)
    try:
        yield tenant_id
    finally:
        _tenant.reset(token)


def current_tenant() -> str:
    tenant_id = _tenant.get()
    if not tenant_id:
        raise TenantNotBoundError("No tenant bound; tools must run through the dispatcher")
    return tenant_id
