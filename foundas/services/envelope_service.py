"""Signed request envelopes and response decoding.

Every request is a CBOR array ``[op_code, public_key, signed_message]``.
The signed message is the 64-byte Ed25519 signature followed by the CBOR
encoding of ``[timestamp, path, *operation_fields]``, so the operation
payload travels inside the signature rather than beside it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, Any

import cbor2
from pydantic import ValidationError

from foundas.exceptions import MalformedResponseError
from foundas.schemas.content import ContentRecord

if TYPE_CHECKING:
    from foundas.schemas.content import PublishedView
    from foundas.services.identity_service import SigningIdentity

logger = logging.getLogger(__name__)


class OpCode(IntEnum):
    """Operation codes understood by the server."""

    WRITE = 1
    READ = 2
    ROTATE_PASSWORD = 3


@dataclass(frozen=True)
class SignedEnvelope:
    """One authenticated request, ready to be encoded as a request body."""

    op_code: OpCode
    public_key: bytes
    signed_message: bytes


def _sign(
    identity: SigningIdentity,
    op_code: OpCode,
    path: str,
    fields: list[Any],
    now: float | None,
) -> SignedEnvelope:
    timestamp = time.time() if now is None else now
    message = cbor2.dumps([timestamp, path, *fields])
    return SignedEnvelope(op_code, identity.public_key, identity.sign(message))


def build_read_envelope(
    identity: SigningIdentity, path: str, now: float | None = None
) -> SignedEnvelope:
    """Ask for the owner's record of *path*."""
    return _sign(identity, OpCode.READ, path, [], now)


def build_write_envelope(
    identity: SigningIdentity,
    path: str,
    record: ContentRecord,
    view: PublishedView,
    now: float | None = None,
) -> SignedEnvelope:
    """Publish *record* and its derived *view* under *path*.

    Both travel as nested CBOR byte strings so the server stores them without
    re-encoding.
    """
    fields = [cbor2.dumps(record.to_wire()), cbor2.dumps(view.to_wire())]
    return _sign(identity, OpCode.WRITE, path, fields, now)


def build_rotate_envelope(
    identity: SigningIdentity,
    path: str,
    new_public_key: bytes,
    now: float | None = None,
) -> SignedEnvelope:
    """Hand ownership of *path* to *new_public_key*, signed by the current owner."""
    return _sign(identity, OpCode.ROTATE_PASSWORD, path, [new_public_key], now)


def encode_envelope(envelope: SignedEnvelope) -> bytes:
    """Request body for *envelope*."""
    return cbor2.dumps([int(envelope.op_code), envelope.public_key, envelope.signed_message])


def decode_record(payload: bytes) -> ContentRecord:
    """Decode a successful read response into a content record.

    Raises:
        MalformedResponseError: If the payload is not a valid CBOR record.
    """
    try:
        data = cbor2.loads(payload)
    except (cbor2.CBORDecodeError, ValueError) as exc:
        raise MalformedResponseError(f"Undecodable read response: {exc}") from exc
    try:
        return ContentRecord.from_wire(data)
    except ValidationError as exc:
        logger.warning("Server returned an invalid content record: %s", exc)
        raise MalformedResponseError("Server returned an invalid content record") from exc
