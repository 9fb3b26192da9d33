# ownables/archive/package.py
import io
import json
import logging
import os
import tempfile
import zipfile
import zlib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ownables.core.errors import (
    AmbiguousOrMissingArchiveError,
    MalformedArchiveError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

MANIFEST_NAME = "package.json"
THUMBNAIL_NAME = "thumbnail.webp"
CHAIN_ENTRY = "chain.json"
TIMESTAMP_ENTRY = "timestamp.txt"
VOLATILE_ENTRIES = (CHAIN_ENTRY, TIMESTAMP_ENTRY)
ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)


@dataclass(frozen=True)
class Manifest:
    """Validated package descriptor."""
    name: str
    version: str
    description: str = ""
    keywords: List[str] = field(default_factory=list)
    authors: List[str] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, data: Any, entry: str = MANIFEST_NAME) -> "Manifest":
        """
        name and version are required non-empty strings. description,
        keywords and authors may be absent but must have the right type
        when present.
        """
        if not isinstance(data, dict):
            raise MalformedArchiveError(f"{entry} must contain a JSON object", entry)

        for key in ("name", "version"):
            value = data.get(key)
            if not isinstance(value, str) or not value.strip():
                raise MalformedArchiveError(f"{entry} is missing required field '{key}'", entry)

        description = data.get("description", "")
        if description is None:
            description = ""
        if not isinstance(description, str):
            raise MalformedArchiveError(f"{entry}: 'description' must be a string", entry)

        lists = {}
        for key in ("keywords", "authors"):
            value = data.get(key)
            if value is None:
                value = []
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise MalformedArchiveError(f"{entry}: '{key}' must be a list of strings", entry)
            lists[key] = list(value)

        return cls(
            name=data["name"],
            version=data["version"],
            description=description,
            keywords=lists["keywords"],
            authors=lists["authors"],
            raw=dict(data),
        )


@dataclass(frozen=True)
class Package:
    """An ownable bundle: archive entries (path → bytes) plus its parsed descriptor."""
    path: Optional[Path]
    entries: Dict[str, bytes]
    manifest: Manifest
    manifest_name: str = MANIFEST_NAME

    @property
    def name(self) -> str:
        return self.manifest.name

    @property
    def description(self) -> str:
        return self.manifest.description

    @property
    def version(self) -> str:
        return self.manifest.version

    @property
    def keywords(self) -> List[str]:
        return self.manifest.keywords

    def find_entry(self, name: str) -> Optional[str]:
        """Root-level entry name matching `name` case-insensitively."""
        return _find_root_entry(self.entries, name)

    @property
    def chain_state(self) -> Optional[bytes]:
        entry = self.find_entry(CHAIN_ENTRY)
        return self.entries[entry] if entry else None

    @property
    def thumbnail(self) -> Optional[bytes]:
        entry = self.find_entry(THUMBNAIL_NAME)
        return self.entries[entry] if entry else None


def _find_root_entry(entries: Mapping[str, bytes], name: str) -> Optional[str]:
    matches = [e for e in entries if "/" not in e.strip("/") and e.lower() == name.lower()]
    return matches[0] if matches else None


def parse_package(entries: Dict[str, bytes], path: Optional[Path] = None) -> Package:
    candidates = [e for e in entries if "/" not in e and e.lower() == MANIFEST_NAME]
    if not candidates:
        raise MalformedArchiveError(f"Archive does not contain {MANIFEST_NAME}", MANIFEST_NAME)
    if len(candidates) > 1:
        raise MalformedArchiveError(
            f"Archive contains more than one manifest: {', '.join(sorted(candidates))}", candidates[0]
        )

    manifest_name = candidates[0]
    try:
        data = json.loads(entries[manifest_name].decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedArchiveError(f"Invalid JSON in {manifest_name}: {e}", manifest_name) from e

    return Package(
        path=path,
        entries=entries,
        manifest=Manifest.from_dict(data, manifest_name),
        manifest_name=manifest_name,
    )


def read_entries(data: bytes) -> Dict[str, bytes]:
    """zip bytes → ordered path → bytes mapping (directory entries skipped)."""
    try:
        zf = zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError) as e:
        raise MalformedArchiveError(f"Not a valid zip archive: {e}") from e

    entries = {}
    with zf:
        for info in zf.infolist():
            if info.is_dir():
                continue
            try:
                entries[info.filename] = zf.read(info)
            # corrupt data, unsupported compression, encrypted entries
            except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError) as e:
                raise MalformedArchiveError(
                    f"Cannot read entry {info.filename}: {e}", info.filename
                ) from e
    return entries


def read_package(path) -> Package:
    path = Path(path)
    if not path.exists():
        raise NotFoundError(f"ZIP file not found: {path}", str(path))
    if not path.is_file():
        raise NotFoundError(f"Path is not a file: {path}", str(path))

    try:
        data = path.read_bytes()
    except OSError as e:
        raise MalformedArchiveError(f"Cannot read {path}: {e}", str(path)) from e
    package = parse_package(read_entries(data), path)
    logger.debug("Read %d entries from %s", len(package.entries), path)
    return package


def write_volatile(package: Package, updates: Mapping[str, bytes]) -> Package:
    """
    New Package with the named volatile entries inserted or replaced.
    Every other entry is kept byte-for-byte.
    """
    entries = dict(package.entries)
    for name, content in updates.items():
        if name not in VOLATILE_ENTRIES:
            raise ValueError(f"Not a volatile entry: {name}")
        existing = _find_root_entry(entries, name)
        if existing and existing != name:
            del entries[existing]
        entries[name] = bytes(content)
    return replace(package, entries=entries)


def package_bytes(package: Package) -> bytes:
    """Zip the entries with fixed timestamps; same entries → same bytes."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, content in package.entries.items():
            info = zipfile.ZipInfo(name, date_time=ZIP_EPOCH)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
            zf.writestr(info, content)
    return buf.getvalue()


def write_package(package: Package, path=None) -> Path:
    """Atomically replace the archive on disk (temp file + rename)."""
    target = Path(path or package.path)
    data = package_bytes(package)
    fd, tmp = tempfile.mkstemp(prefix=".ownable-", suffix=".zip.tmp", dir=target.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp, target)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise
    logger.debug("Wrote %d bytes to %s", len(data), target)
    return target


def locate_single_archive(directory) -> Path:
    directory = Path(directory)
    if not directory.is_dir():
        raise AmbiguousOrMissingArchiveError(f"Not a directory: {directory}")
    candidates = sorted(
        p for p in directory.iterdir()
        if p.is_file() and p.suffix.lower() == ".zip" and not p.name.startswith(".")
    )
    if not candidates:
        raise AmbiguousOrMissingArchiveError(f"No ZIP file found in {directory}")
    if len(candidates) > 1:
        names = [p.name for p in candidates]
        raise AmbiguousOrMissingArchiveError(
            f"More than one ZIP file found in {directory}: {', '.join(names)}", names
        )
    return candidates[0]
