"""Keeps the edited proposal in sync with the local cache and remote store."""

from __future__ import annotations

from .engine import SaveState, SyncEngine
from .state import ProposalState

__all__ = ["ProposalState", "SaveState", "SyncEngine"]
