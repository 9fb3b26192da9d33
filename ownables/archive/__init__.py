# ownables/archive/__init__.py
"""
Reading and writing ownable package archives.
"""

from .package import (
    CHAIN_ENTRY,
    MANIFEST_NAME,
    THUMBNAIL_NAME,
    TIMESTAMP_ENTRY,
    VOLATILE_ENTRIES,
    Manifest,
    Package,
    locate_single_archive,
    package_bytes,
    parse_package,
    read_package,
    write_package,
    write_volatile,
)

__all__ = [
    "CHAIN_ENTRY",
    "MANIFEST_NAME",
    "THUMBNAIL_NAME",
    "TIMESTAMP_ENTRY",
    "VOLATILE_ENTRIES",
    "Manifest",
    "Package",
    "locate_single_archive",
    "package_bytes",
    "parse_package",
    "read_package",
    "write_package",
    "write_volatile",
]
