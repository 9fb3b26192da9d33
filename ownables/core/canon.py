# ownables/core/canon.py
import hashlib
from typing import Any

import jcs


def canonical_json(obj: Any) -> bytes:
    """RFC 8785 (JCS) bytes for anything that gets hashed or signed."""
    return jcs.canonicalize(obj)


def canonical_json_str(obj: Any) -> str:
    return canonical_json(obj).decode("utf-8")


def canonical_digest(obj: Any) -> str:
    """hex(sha256) of the canonical form."""
    return hashlib.sha256(canonical_json(obj)).hexdigest()
