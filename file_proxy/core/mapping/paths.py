"""
Path resolution: REST resource path -> object key or listing prefix.

The resolver works on the raw, still percent-encoded request path and
decodes each segment on its own. That way an encoded separator such as
`%2F` inside a user id or file name is seen as part of the variable and
rejected, instead of silently becoming an extra path level.

Key layout in the bucket:
    {userId}/{fileName}    single file
    {userId}/              listing prefix (delimiter "/")
"""

import logging
from urllib.parse import unquote

from .errors import MalformedPath
from .models import ResolvedPath, ResourceKind

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "/"
LISTING_DELIMITER = "/"

# Characters that would let a variable escape its own key level
RESERVED_CHARACTERS = frozenset({"/", "\\"})
RESERVED_NAMES = frozenset({".", ".."})

_USERS_SEGMENT = "users"
_FILES_SEGMENT = "files"


def validate_segment(name: str, value: str) -> str:
    """Return `value` if it is safe to embed in an object key."""
    if not value:
        raise MalformedPath(f"{name} must not be empty", parameter=name)
    if any(char in value for char in RESERVED_CHARACTERS):
        raise MalformedPath(
            f"{name} must not contain a path separator", parameter=name
        )
    if value in RESERVED_NAMES:
        raise MalformedPath(f"{name} must not be '{value}'", parameter=name)
    return value


def build_object_key(user_id: str, file_name: str) -> str:
    """Object key for a single file."""
    return (
        validate_segment("userId", user_id)
        + KEY_SEPARATOR
        + validate_segment("fileName", file_name)
    )


def build_listing_prefix(user_id: str) -> str:
    """Prefix that selects the direct children of a user's folder."""
    return validate_segment("userId", user_id) + KEY_SEPARATOR


def resolve_path(raw_path: str) -> ResolvedPath:
    """
    Match a raw request path against the two resource templates.

    Args:
        raw_path: Path relative to the stage root, e.g.
            "/users/alice/files/photo%201.png". Query strings must
            already be stripped.

    Raises:
        MalformedPath: the path matches no resource, or a variable is
            empty or contains a reserved separator.
    """
    # Only the leading slash is dropped; a trailing one yields an empty segment
    segments = raw_path[1:].split("/") if raw_path.startswith("/") else raw_path.split("/")

    if len(segments) < 3 or segments[0] != _USERS_SEGMENT or segments[2] != _FILES_SEGMENT:
        raise MalformedPath(f"No resource matches path {raw_path!r}")

    user_id = unquote(segments[1])

    if len(segments) == 3:
        return ResolvedPath(
            resource=ResourceKind.FILE_LIST,
            user_id=user_id,
            key=build_listing_prefix(user_id),
            delimiter=LISTING_DELIMITER,
        )

    if len(segments) > 4:
        raise MalformedPath(
            "fileName must not contain a path separator", parameter="fileName"
        )

    file_name = unquote(segments[3])
    return ResolvedPath(
        resource=ResourceKind.FILE,
        user_id=user_id,
        file_name=file_name,
        key=build_object_key(user_id, file_name),
    )
