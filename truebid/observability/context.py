from __future__ import annotations

from contextvars import ContextVar

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
proposal_id_var: ContextVar[str | None] = ContextVar("proposal_id", default=None)


def get_request_id() -> str | None:
    return request_id_var.get()


def get_proposal_id() -> str | None:
    return proposal_id_var.get()
