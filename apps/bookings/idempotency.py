"""Idempotency keys for reservation requests."""

from __future__ import annotations

import hashlib
import json
import secrets
import time
from typing import TYPE_CHECKING

from shared.domain.outcomes import ErrorKind, Outcome

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from .application.command_handlers import ReserveCourtCommand
    from .models import Booking

MAX_KEY_LENGTH = 255

KEY_REUSED_MESSAGE = "Idempotency key was already used with a different request."


def resolve_key(raw_key: str | None, requester_id: int) -> str:
    """
    Return the client key, or synthesize one when it is missing.

    A synthesized key only satisfies the unique constraint; it gives the
    client no retry safety.
    """

    key = (raw_key or "").strip()
    if key:
        return key[:MAX_KEY_LENGTH]
    return f"{requester_id}-{int(time.time() * 1000)}-{secrets.token_hex(8)}"


def fingerprint(command: "ReserveCourtCommand") -> str:
    """SHA-256 of the canonical request payload, requester included."""

    payload = {
        "requester": command.requester_id,
        "court": command.court_id,
        "date": command.day.isoformat(),
        "start_hour": command.start_hour,
        "duration": command.duration_hours,
        "note": command.note or "",
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def find_replay(key: str, request_fingerprint: str) -> Outcome["Booking"] | None:
    """
    Look up an earlier reservation made with ``key``.

    Returns ``None`` for a fresh key, the original booking when the same
    request is replayed, and a ``CONFLICT`` when the key comes back with a
    different payload.
    """

    from .models import Booking

    booking = (
        Booking.objects.select_related("payment", "court")
        .filter(idempotency_key=key)
        .first()
    )
    if booking is None:
        return None
    if booking.request_fingerprint and booking.request_fingerprint != request_fingerprint:
        return Outcome.fail(ErrorKind.CONFLICT, KEY_REUSED_MESSAGE)
    return Outcome.ok(booking)
