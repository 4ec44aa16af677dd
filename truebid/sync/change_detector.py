from __future__ import annotations

import hashlib
from typing import Any

import orjson

# Volatile snapshot keys that never count as a change.
_IGNORED_KEYS = frozenset({"lastSaved"})


def canonical_json(snapshot: dict[str, Any]) -> bytes:
    body = {k: v for k, v in snapshot.items() if k not in _IGNORED_KEYS}
    return orjson.dumps(body, option=orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS)


def fingerprint(snapshot: dict[str, Any]) -> str:
    return hashlib.sha256(canonical_json(snapshot)).hexdigest()


class ChangeDetector:
    """Remembers the last persisted fingerprint per proposal id."""

    def __init__(self):
        self._last: dict[str, str] = {}

    def last(self, proposal_id: str) -> str | None:
        return self._last.get(proposal_id)

    def has_changed(self, proposal_id: str, snapshot: dict[str, Any]) -> bool:
        return self._last.get(proposal_id) != fingerprint(snapshot)

    def record(self, proposal_id: str, snapshot: dict[str, Any]) -> bool:
        """Record the snapshot's fingerprint; False when it matches the previous one."""
        fp = fingerprint(snapshot)
        if self._last.get(proposal_id) == fp:
            return False
        self._last[proposal_id] = fp
        return True

    def reset(self, proposal_id: str | None = None) -> None:
        if proposal_id is None:
            self._last.clear()
        else:
            self._last.pop(proposal_id, None)
