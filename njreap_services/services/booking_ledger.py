"""
Idempotency ledger for booking submissions.

One row per Idempotency-Key in ``booking_attempts``. The insert is the claim:
a unique-key conflict means another request already owns the key. A failed or
abandoned attempt is taken over with a conditional update, so only one retry
can resume it.
"""

import hashlib
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from ..core.scheduling import parse_timestamp
from ..exceptions import IdempotencyConflictError, StoreError

logger = logging.getLogger(__name__)

TABLE = "booking_attempts"
UNIQUE_VIOLATION = "23505"

STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

# an in_progress attempt untouched for this long is treated as abandoned
STALE_AFTER = timedelta(minutes=10)


def request_fingerprint(payload: Dict[str, Any]) -> str:
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def _is_unique_violation(error: Exception) -> bool:
    code = getattr(error, "code", None)
    return code == UNIQUE_VIOLATION or UNIQUE_VIOLATION in str(error)


class BookingLedger:
    def __init__(self, client, stale_after: timedelta = STALE_AFTER):
        self.supabase = client
        self.stale_after = stale_after

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table(TABLE).select("*").eq("idempotency_key", key).limit(1).execute()
        return result.data[0] if result.data else None

    def claim(self, key: str, fingerprint: str) -> Tuple[Dict[str, Any], bool]:
        """
        Claim a key for processing.

        Returns (row, claimed). ``claimed`` is False when a completed attempt
        already exists and its stored response should be replayed.
        """
        row = {
            "idempotency_key": key,
            "request_hash": fingerprint,
            "status": STATUS_IN_PROGRESS,
        }
        try:
            result = self.supabase.table(TABLE).insert(row).execute()
            return (result.data or [row])[0], True
        except Exception as e:
            if not _is_unique_violation(e):
                logger.error(f"Error claiming booking key {key}: {e}")
                raise StoreError("Failed to record booking attempt", response=str(e))

        existing = self.get(key)
        if not existing:
            raise IdempotencyConflictError("Booking with this key is already being processed")
        if existing.get("request_hash") and existing["request_hash"] != fingerprint:
            raise IdempotencyConflictError("Idempotency key was already used for a different booking")
        status = existing.get("status")
        if status == STATUS_COMPLETED:
            return existing, False
        if status == STATUS_IN_PROGRESS and not self._is_stale(existing):
            raise IdempotencyConflictError("Booking with this key is already being processed")

        # failed or abandoned: take it over and resume from the recorded steps
        resumed = self._take_over(key, existing)
        logger.info(f"Resuming booking attempt {key} (was {status})")
        return {**existing, **resumed}, True

    def _is_stale(self, row: Dict[str, Any]) -> bool:
        updated = parse_timestamp(row.get("updated_at"))
        return updated is not None and datetime.now(timezone.utc) - updated > self.stale_after

    def _take_over(self, key: str, existing: Dict[str, Any]) -> Dict[str, Any]:
        """Flip the row back to in_progress only if nobody else changed it since it was read."""
        fields = {"status": STATUS_IN_PROGRESS, "error": None,
                  "updated_at": datetime.now(timezone.utc).isoformat()}
        query = (self.supabase.table(TABLE).update(fields)
                 .eq("idempotency_key", key)
                 .eq("status", existing.get("status")))
        if existing.get("updated_at"):
            query = query.eq("updated_at", existing["updated_at"])
        try:
            result = query.execute()
        except Exception as e:
            logger.error(f"Error resuming booking attempt {key}: {e}")
            raise StoreError("Failed to update booking attempt", response=str(e))
        if not result.data:
            raise IdempotencyConflictError("Booking with this key is already being processed")
        return result.data[0]

    def record(self, key: str, **fields: Any) -> Dict[str, Any]:
        return self._update(key, fields)

    def complete(self, key: str, response: Dict[str, Any]) -> Dict[str, Any]:
        return self._update(key, {"status": STATUS_COMPLETED, "response": response})

    def fail(self, key: str, error: str) -> Dict[str, Any]:
        return self._update(key, {"status": STATUS_FAILED, "error": error})

    def _update(self, key: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        fields = {**fields, "updated_at": datetime.now(timezone.utc).isoformat()}
        try:
            result = self.supabase.table(TABLE).update(fields).eq("idempotency_key", key).execute()
        except Exception as e:
            logger.error(f"Error updating booking attempt {key}: {e}")
            raise StoreError("Failed to update booking attempt", response=str(e))
        return (result.data or [fields])[0]
