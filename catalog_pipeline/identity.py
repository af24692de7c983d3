"""
Deterministic identifiers.

Every emitted entity gets an id derived from a semantic seed ("unit:<faction>:
<unit>", ...) so that re-running the pipeline over the same documents yields
the same ids, and the destination can upsert on them.
"""

import hashlib
import uuid


def uuid_from_seed(seed: str) -> str:
    """MD5 digest of *seed* laid out as a hyphenated 8-4-4-4-12 hex token."""
    digest = hashlib.md5(seed.encode("utf-8")).hexdigest()
    return str(uuid.UUID(hex=digest))


def faction_id(faction: str) -> str:
    return uuid_from_seed(f"faction:{faction}")


def unit_id(faction: str, unit: str) -> str:
    return uuid_from_seed(f"unit:{faction}:{unit}")


def detachment_id(faction: str, detachment: str) -> str:
    return uuid_from_seed(f"detachment:{faction}:{detachment}")


def enhancement_id(faction: str, detachment: str, enhancement: str) -> str:
    return uuid_from_seed(f"enhancement:{faction}:{detachment}:{enhancement}")


def wargear_id(faction: str, unit: str, group: str, option: str) -> str:
    return uuid_from_seed(f"wargear:{faction}:{unit}:{group}:{option}")
