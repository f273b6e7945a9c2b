"""Frame codec for savestate files.

A frame wraps the serializer payload with a fixed 8-byte header so that a
truncated or foreign file can be rejected before it reaches the serializer:

    offset 0  len 4   ASCII "SAVE"            (magic)
    offset 4  len 4   int32, little-endian    (version, >= 1)
    offset 8  len N   opaque serializer bytes (payload)

All functions here are pure and operate on byte buffers only.
"""

from __future__ import annotations

import struct
from typing import NamedTuple

from .errors import ErrorCode, FrameValidationError

MAGIC_HEADER = b"SAVE"
HEADER_SIZE = 8  # Magic(4) + Version(4)

_VERSION_STRUCT = struct.Struct("<i")
MAX_FRAME_VERSION = 2**31 - 1

REASON_TOO_SMALL = "too small"
REASON_BAD_MAGIC = "bad magic"
REASON_BAD_VERSION = "bad version"
REASON_VERSION_TOO_NEW = "version too new"

_REASON_CODES = {
    REASON_TOO_SMALL: ErrorCode.E101_FRAME_TOO_SMALL,
    REASON_BAD_MAGIC: ErrorCode.E102_BAD_MAGIC,
    REASON_BAD_VERSION: ErrorCode.E103_BAD_VERSION,
    REASON_VERSION_TOO_NEW: ErrorCode.E104_VERSION_TOO_NEW,
}


class FrameValidation(NamedTuple):
    """Outcome of :func:`validate_frame`.

    ``reason`` is one of the short ``REASON_*`` constants (empty when ok);
    ``detail`` is a longer message for logs.
    """

    ok: bool
    reason: str = ""
    detail: str = ""
    version: int | None = None


def wrap_payload(payload: bytes, version: int) -> bytes:
    """Prefix ``payload`` with the magic header and ``version``.

    Raises:
        FrameValidationError: If ``version`` is outside [1, MAX_FRAME_VERSION]
    """
    if not 1 <= version <= MAX_FRAME_VERSION:
        raise FrameValidationError(
            ErrorCode.E103_BAD_VERSION,
            f"Version {version} does not fit the frame header (expected 1..{MAX_FRAME_VERSION})",
            reason=REASON_BAD_VERSION,
        )
    return MAGIC_HEADER + _VERSION_STRUCT.pack(version) + bytes(payload)


def unwrap_payload(frame: bytes) -> bytes:
    """Return the payload after the header. Call :func:`validate_frame` first."""
    return bytes(frame[HEADER_SIZE:])


def read_frame_version(frame: bytes) -> int | None:
    """Return the header version, or None when the buffer is shorter than a header."""
    if len(frame) < HEADER_SIZE:
        return None
    (version,) = _VERSION_STRUCT.unpack_from(frame, 4)
    return int(version)


def validate_frame(frame: bytes, *, max_version: int | None = None) -> FrameValidation:
    """Check the structural integrity of a frame.

    Args:
        frame: Complete file contents
        max_version: Optional upper bound; versions above it are rejected.
            Without it any version >= 1 is structurally valid and the upper
            bound is left to the migrator.

    Returns:
        FrameValidation with ``ok`` and the failure reason
    """
    if len(frame) < HEADER_SIZE:
        return FrameValidation(
            False,
            REASON_TOO_SMALL,
            f"File too small ({len(frame)} bytes, expected at least {HEADER_SIZE})",
        )

    magic = bytes(frame[:4])
    if magic != MAGIC_HEADER:
        return FrameValidation(
            False,
            REASON_BAD_MAGIC,
            f"Invalid magic header: {magic!r} (expected {MAGIC_HEADER!r})",
        )

    version = read_frame_version(frame)
    assert version is not None
    if version < 1:
        return FrameValidation(
            False,
            REASON_BAD_VERSION,
            f"Invalid version: {version} (expected integer > 0)",
            version,
        )

    if max_version is not None and version > max_version:
        return FrameValidation(
            False,
            REASON_VERSION_TOO_NEW,
            f"Version {version} exceeds supported maximum {max_version}",
            version,
        )

    return FrameValidation(True, "", "", version)


def require_valid_frame(frame: bytes, *, max_version: int | None = None) -> bytes:
    """Validate ``frame`` and return its payload.

    Raises:
        FrameValidationError: If the frame is structurally invalid
    """
    result = validate_frame(frame, max_version=max_version)
    if not result.ok:
        raise FrameValidationError(
            _REASON_CODES.get(result.reason, ErrorCode.E100_FRAME_INVALID),
            result.detail,
            reason=result.reason,
        )
    return unwrap_payload(frame)
