from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass

from repairdesk.errors import validation_error
from repairdesk.runtime_profile import env_int

ALLOWED_PHOTO_TYPES: frozenset[str] = frozenset({"image/jpeg", "image/png"})

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<payload>[A-Za-z0-9+/=\s]+)$")


@dataclass(frozen=True)
class PhotoPolicy:
    max_count: int = 5
    max_bytes: int = 5 * 1024 * 1024

    @classmethod
    def from_env(cls) -> "PhotoPolicy":
        return cls(
            max_count=env_int("PHOTO_MAX_COUNT", default=5, minimum=0),
            max_bytes=env_int("PHOTO_MAX_BYTES", default=5 * 1024 * 1024, minimum=1),
        )


def photo_data_url(*, content_type: str, content: bytes) -> str:
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


def validate_photos(photos: list[str], *, policy: PhotoPolicy) -> list[str]:
    """Check count, type and decoded size of photo data URLs; return them in order."""
    if len(photos) > policy.max_count:
        raise validation_error("PHOTO_LIMIT_EXCEEDED", f"at most {policy.max_count} photos are allowed")
    accepted: list[str] = []
    for index, photo in enumerate(photos):
        match = _DATA_URL_RE.match(photo.strip())
        if match is None:
            raise validation_error("PHOTO_TYPE_INVALID", f"photo {index} is not a base64 data URL")
        if match.group("mime").lower() not in ALLOWED_PHOTO_TYPES:
            raise validation_error("PHOTO_TYPE_INVALID", "only JPG and PNG photos are allowed")
        try:
            decoded = base64.b64decode(re.sub(r"\s+", "", match.group("payload")), validate=True)
        except (binascii.Error, ValueError):
            raise validation_error("PHOTO_TYPE_INVALID", f"photo {index} is not valid base64") from None
        if not decoded:
            raise validation_error("PHOTO_TYPE_INVALID", f"photo {index} is empty")
        if len(decoded) > policy.max_bytes:
            raise validation_error("PHOTO_TOO_LARGE", f"each photo must be at most {policy.max_bytes} bytes")
        accepted.append(photo.strip())
    return accepted
