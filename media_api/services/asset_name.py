"""Stored image naming.

Every image the service writes is named ``image-<unix_ms>-<random>.<ext>``.
The same rules decide which names are generated on upload and which names a
delete request may refer to, so both paths go through :class:`AssetName`.
"""

import re
import secrets
import time
from dataclasses import dataclass
from pathlib import Path, PurePath

from media_api.errors import InvalidFilename, InvalidPath

ALLOWED_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "webp")
WEBP_EXTENSION = "webp"

_CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}

_NAME_RE = re.compile(
    r"image-(?P<timestamp>\d+)-(?P<suffix>\d+)\.(?P<ext>jpg|jpeg|png|gif|webp)",
    re.IGNORECASE,
)

_RANDOM_SUFFIX_MAX = 10**9


def _pick_extension(original_name: str | None, content_type: str | None) -> str:
    suffix = PurePath(original_name or "").suffix.lower().lstrip(".")
    if suffix in ALLOWED_EXTENSIONS:
        return suffix
    return _CONTENT_TYPE_EXTENSIONS.get((content_type or "").lower(), "jpg")


@dataclass(frozen=True)
class AssetName:
    timestamp: int
    suffix: int
    extension: str

    @classmethod
    def generate(cls, original_name: str | None = None, content_type: str | None = None) -> "AssetName":
        return cls(
            timestamp=time.time_ns() // 1_000_000,
            suffix=secrets.randbelow(_RANDOM_SUFFIX_MAX + 1),
            extension=_pick_extension(original_name, content_type),
        )

    @classmethod
    def parse(cls, filename: str) -> "AssetName":
        """Parse a client-supplied filename; never touches the filesystem."""
        match = _NAME_RE.fullmatch(filename or "")
        if match is None:
            raise InvalidFilename()
        # Keep the caller's spelling of the extension so the name maps back
        # to the exact file on case-sensitive filesystems.
        return cls(
            timestamp=int(match.group("timestamp")),
            suffix=int(match.group("suffix")),
            extension=match.group("ext"),
        )

    @property
    def stem(self) -> str:
        return f"image-{self.timestamp}-{self.suffix}"

    @property
    def filename(self) -> str:
        return f"{self.stem}.{self.extension}"

    @property
    def webp_filename(self) -> str:
        return f"{self.stem}.{WEBP_EXTENSION}"

    def webp_sibling(self) -> "AssetName":
        return AssetName(self.timestamp, self.suffix, WEBP_EXTENSION)

    def resolve_in(self, directory: Path) -> Path:
        root = Path(directory).resolve()
        candidate = (root / self.filename).resolve()
        if not candidate.is_relative_to(root) or candidate == root:
            raise InvalidPath()
        return candidate

    def public_url(self, prefix: str) -> str:
        return f"{prefix.rstrip('/')}/{self.filename}"

    def __str__(self) -> str:
        return self.filename
