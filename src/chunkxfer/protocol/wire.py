"""Multipart framing for bus messages crossing a process boundary.

Layout:
    (optional routing prefix...), version, to, from, options_json, body_json, bulk

Chunk data travels untouched in the bulk frame; the JSON header never
carries raw bytes. Any other bytes values in a dictionary body (such as the
transfer hash) are hex-encoded in the header and listed under ``_hex`` so
that they can be restored on the receiving side.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence, Tuple

from .. import json
from . import fields


# This is the version of the on-the-wire framing implemented here,
# identified by a single byte.

version = b"a"

_BULK_KEY = "_bulk"
_HEX_KEY = "_hex"

_BYTES = (bytes, bytearray, memoryview)


class FramingError(ValueError):
    """A multipart message could not be interpreted."""


def encode_body(body: Any) -> Tuple[bytes, bytes]:
    """Return (json_bytes, bulk_bytes) for a message body."""

    if body is None:
        return b"", b""

    if isinstance(body, _BYTES):
        return json.dumps({_BULK_KEY: None}), bytes(body)

    if not isinstance(body, dict):
        return json.dumps(body), b""

    header = dict()
    hexed = list()
    bulk = b""

    for key, value in body.items():
        if isinstance(value, _BYTES):
            if key == fields.DATA:
                header[_BULK_KEY] = key
                bulk = bytes(value)
            else:
                header[key] = bytes(value).hex()
                hexed.append(key)
        else:
            header[key] = value

    if hexed:
        header[_HEX_KEY] = hexed

    return json.dumps(header), bulk


def decode_body(body_bytes: bytes, bulk_bytes: bytes) -> Any:
    if body_bytes in (b"", None):
        return None

    body = json.loads(body_bytes)

    if not isinstance(body, dict):
        return body

    if _BULK_KEY in body:
        key = body.pop(_BULK_KEY)
        if key is None:
            return bytes(bulk_bytes)
        body[key] = bytes(bulk_bytes)

    hexed = body.pop(_HEX_KEY, ())
    for key in hexed:
        try:
            body[key] = bytes.fromhex(body[key])
        except (KeyError, TypeError, ValueError) as exc:
            raise FramingError(f"invalid hex field {key!r}") from exc

    return body


def to_frames(to: str, frm: Optional[str], body: Any = None,
              options: Optional[dict] = None, prefix: Sequence[bytes] = ()) -> Tuple[bytes, ...]:
    """Encode one bus message as multipart frames."""

    body_bytes, bulk = encode_body(body)

    if options:
        options_bytes = json.dumps(options)
    else:
        options_bytes = b""

    parts = (
        version,
        to.encode(),
        (frm or "").encode(),
        options_bytes,
        body_bytes,
        bulk,
    )
    return tuple(prefix) + parts


def from_frames(parts: Sequence[bytes]) -> Tuple[Tuple[bytes, ...], str, Optional[str], Any, dict]:
    """Decode multipart frames into (prefix, to, from, body, options).

    ROUTER sockets prepend an identity frame; when present it is returned
    as the routing prefix.
    """

    if not parts:
        raise FramingError("empty message")

    if len(parts) == 7:
        prefix = (bytes(parts[0]),)
        start = 1
    elif len(parts) == 6:
        prefix = ()
        start = 0
    else:
        raise FramingError(f"expected 6 or 7 frames, received {len(parts)}")

    their_version = parts[start]
    if their_version != version:
        raise FramingError(
            f"message is framing version {their_version!r}, recipient expects {version!r}"
        )

    to = parts[start + 1].decode()
    frm = parts[start + 2].decode() or None

    options_bytes = parts[start + 3]
    if options_bytes in (b"", None):
        options = dict()
    else:
        options = json.loads(options_bytes)

    body = decode_body(parts[start + 4], parts[start + 5])
    return prefix, to, frm, body, options
