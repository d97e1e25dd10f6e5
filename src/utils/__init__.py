"""Organization Archiver - Shared utilities."""

import re

_RESERVED_ID = re.compile(r"^__.*__$")


def validate_collection_name(name: str) -> str:
    """Validate a Firestore collection ID.

    Firestore rejects IDs containing a forward slash, the IDs "." and "..",
    and IDs matching the reserved ``__.*__`` pattern. Nested paths are not
    accepted here since only top-level collections are archived.

    Args:
        name: Collection ID

    Returns:
        The unchanged collection ID

    Raises:
        ValueError: If the collection ID is invalid
    """
    if not name or not name.strip():
        raise ValueError("Collection name must not be empty")

    if "/" in name:
        raise ValueError(
            f"Invalid collection name: {name!r}. Only top-level collections are supported."
        )

    if name in (".", "..") or _RESERVED_ID.match(name):
        raise ValueError(f"Invalid collection name: {name!r}. This ID is reserved by Firestore.")

    # Firestore limit is 1,500 bytes per ID
    if len(name.encode("utf-8")) > 1500:
        raise ValueError(f"Invalid collection name: {name[:32]!r}... exceeds 1500 bytes")

    return name
