"""
Binary media handling.

A content type is "binary" when it matches one of the configured media
patterns (`image/*` by default). Binary bodies travel as raw bytes and are
never inspected; text bodies must be valid UTF-8. Adding a new binary type
is a configuration change, not a code change.
"""

from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Iterable, Optional

DEFAULT_BINARY_MEDIA_TYPES = ("image/*",)


def normalize_media_type(content_type: Optional[str]) -> Optional[str]:
    """Strip parameters and case: 'Image/PNG; q=1' -> 'image/png'."""
    if not content_type:
        return None
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type or None


@dataclass(frozen=True)
class BinaryMediaPolicy:
    """Decides which content types are passed through as opaque bytes."""
    patterns: tuple[str, ...] = DEFAULT_BINARY_MEDIA_TYPES

    @classmethod
    def from_patterns(cls, patterns: Iterable[str]) -> "BinaryMediaPolicy":
        cleaned = tuple(
            p.strip().lower() for p in patterns if p and p.strip()
        )
        return cls(patterns=cleaned)

    def is_binary(self, content_type: Optional[str]) -> bool:
        """
        True if any media type in `content_type` matches a binary pattern.

        Accept headers can list several types ("image/png, */*;q=0.8");
        each entry is checked. A bare `*/*` never makes a request binary.
        """
        if not content_type:
            return False
        for entry in content_type.split(","):
            media_type = normalize_media_type(entry)
            if not media_type or media_type == "*/*":
                continue
            if any(fnmatchcase(media_type, pattern) for pattern in self.patterns):
                return True
        return False

    def any_binary(self, *content_types: Optional[str]) -> bool:
        return any(self.is_binary(ct) for ct in content_types)
