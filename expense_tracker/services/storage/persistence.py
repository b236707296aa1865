"""
State Persistence

The full ExpenseState is stored as one JSON blob under a single
namespaced key, wrapped in an envelope:

    {"state": {...camelCase state...}, "version": 0}

Anything else stored alongside the state in the envelope (by older app
versions) is preserved on save.
"""

import json
from typing import Optional

import structlog
from pydantic import ValidationError

from expense_tracker.config import get_settings
from expense_tracker.models.expense import ExpenseState
from expense_tracker.services.storage.interface import (
    CorruptStateError,
    KeyValueStore,
)


ENVELOPE_VERSION = 0

logger = structlog.get_logger(__name__)


class StatePersistence:
    """Loads and saves ExpenseState through a KeyValueStore."""
    
    def __init__(self, store: KeyValueStore, key: Optional[str] = None):
        self._store = store
        self._key = key or get_settings().storage.storage_key
    
    @property
    def key(self) -> str:
        return self._key
    
    @property
    def store(self) -> KeyValueStore:
        return self._store
    
    def load(self) -> Optional[ExpenseState]:
        """
        Load the persisted state.
        
        Returns:
            The state, or None if nothing has been stored yet
            
        Raises:
            CorruptStateError: If the stored blob cannot be parsed
        """
        raw = self._store.get(self._key)
        if raw is None:
            return None
        
        envelope = self._read_envelope(raw)
        try:
            return ExpenseState.model_validate(envelope.get("state") or {})
        except ValidationError as e:
            raise CorruptStateError(
                self._key, f"Stored state failed validation: {e.error_count()} errors"
            ) from e
    
    def save(self, state: ExpenseState) -> None:
        """
        Persist the state, replacing the stored blob.
        
        Raises:
            StorageError: If the backend write fails
        """
        envelope = {"version": ENVELOPE_VERSION}
        raw = self._store.get(self._key)
        if raw is not None:
            try:
                envelope = self._read_envelope(raw)
            except CorruptStateError:
                logger.warning("overwriting_corrupt_state", key=self._key)
        
        envelope["state"] = state.model_dump(mode="json", by_alias=True)
        self._store.set(self._key, json.dumps(envelope))
        logger.debug(
            "state_saved",
            key=self._key,
            expenses=len(state.expenses),
            recurring=len(state.recurring_expenses),
        )
    
    def _read_envelope(self, raw: str) -> dict:
        try:
            envelope = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorruptStateError(self._key, f"Stored state is not JSON: {e}") from e
        if not isinstance(envelope, dict):
            raise CorruptStateError(self._key, "Stored state is not a JSON object")
        return envelope
