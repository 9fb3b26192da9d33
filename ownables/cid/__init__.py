# ownables/cid/__init__.py
"""
Deterministic content identifiers for ownable packages.
"""

from .calculator import (
    CHUNK_SIZE,
    CidConfig,
    compute_cid,
    compute_directory_cid,
    is_excluded,
)

__all__ = [
    "CHUNK_SIZE",
    "CidConfig",
    "compute_cid",
    "compute_directory_cid",
    "is_excluded",
]
