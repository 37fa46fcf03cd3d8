"""
Idempotency keys for client-submitted mutating requests.

A request is identified by (key, scope) and fingerprinted by a hash of its body.
The first request takes the lock (IN_PROGRESS), retries of a completed request get
the stored response back, and reusing a key with a different body is rejected.
"""
import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from tortoise.exceptions import IntegrityError

from app.core.config import IDEMPOTENCY_TTL_HOURS
from app.core.errors import IdempotencyConflict
from app.models.idempotency import IdempotencyRecord, IdempotencyStatus

log = logging.getLogger(__name__)

# A lost insert race re-runs the check; bounded so a pathological store cannot loop forever
MAX_CHECK_ROUNDS = 3


@dataclass(frozen=True)
class StoredResponse:
    status_code: int
    body: Dict[str, Any]


@dataclass(frozen=True)
class IdempotencyCheck:
    status: IdempotencyStatus
    is_new: bool
    stored_response: Optional[StoredResponse] = None


def fingerprint(payload: Any) -> str:
    """Stable SHA-256 over the payload; key order in nested mappings does not matter."""
    normalized = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


async def check_or_create(key: str, scope: str, payload: Any) -> IdempotencyCheck:
    if not key or not scope:
        raise ValueError("Idempotency key and scope must be non-empty strings.")

    request_hash = fingerprint(payload)

    for _ in range(MAX_CHECK_ROUNDS):
        now = datetime.now(timezone.utc)
        existing = await IdempotencyRecord.get_or_none(idem_key=key, scope=scope)

        if existing and existing.expires_at <= now:
            # TTL applies regardless of status; an expired key starts over
            log.info(f"Idempotency key {key} ({scope}) expired, discarding it.")
            await IdempotencyRecord.filter(id=existing.id).delete()
            existing = None

        if existing:
            return await _resolve_existing(existing, request_hash, now)

        try:
            await IdempotencyRecord.create(
                idem_key=key,
                scope=scope,
                request_hash=request_hash,
                status=IdempotencyStatus.IN_PROGRESS,
                locked_at=now,
                expires_at=now + timedelta(hours=IDEMPOTENCY_TTL_HOURS),
            )
        except IntegrityError:
            # Another request inserted the same (key, scope) first; check again as if it pre-existed
            log.info(f"Idempotency key {key} ({scope}) created concurrently, re-checking.")
            continue

        return IdempotencyCheck(status=IdempotencyStatus.IN_PROGRESS, is_new=True)

    raise RuntimeError(f"Could not resolve idempotency key {key} ({scope}).")


async def _resolve_existing(record: IdempotencyRecord, request_hash: str, now: datetime) -> IdempotencyCheck:
    if record.request_hash != request_hash:
        log.warning(f"Idempotency key {record.idem_key} ({record.scope}) reused with a different payload.")
        raise IdempotencyConflict()

    if record.status == IdempotencyStatus.COMPLETED:
        return IdempotencyCheck(
            status=IdempotencyStatus.COMPLETED,
            is_new=False,
            stored_response=StoredResponse(
                status_code=record.response_code,
                body=record.response_body or {},
            ),
        )

    if record.status == IdempotencyStatus.IN_PROGRESS:
        return IdempotencyCheck(status=IdempotencyStatus.IN_PROGRESS, is_new=False)

    # FAILED: allow a retry, but only one concurrent retrier may take the lock
    taken = await IdempotencyRecord.filter(id=record.id, status=IdempotencyStatus.FAILED).update(
        status=IdempotencyStatus.IN_PROGRESS, locked_at=now
    )
    return IdempotencyCheck(status=IdempotencyStatus.IN_PROGRESS, is_new=bool(taken))


async def mark_completed(key: str, scope: str, response_code: int, response_body: Dict[str, Any]) -> None:
    updated = await IdempotencyRecord.filter(
        idem_key=key, scope=scope, status=IdempotencyStatus.IN_PROGRESS
    ).update(
        status=IdempotencyStatus.COMPLETED,
        response_code=response_code,
        response_body=response_body,
        locked_at=None,
    )
    if not updated:
        log.warning(f"mark_completed found no IN_PROGRESS record for {key} ({scope}).")


async def mark_failed(key: str, scope: str) -> None:
    updated = await IdempotencyRecord.filter(
        idem_key=key, scope=scope, status=IdempotencyStatus.IN_PROGRESS
    ).update(status=IdempotencyStatus.FAILED, locked_at=None)
    if not updated:
        log.warning(f"mark_failed found no IN_PROGRESS record for {key} ({scope}).")


async def purge_expired(now: Optional[datetime] = None) -> int:
    """Deletes expired keys. Called by the maintenance job to keep the table bounded."""
    now = now or datetime.now(timezone.utc)
    deleted = await IdempotencyRecord.filter(expires_at__lte=now).delete()
    log.info(f"Purged {deleted} expired idempotency keys.")
    return deleted
