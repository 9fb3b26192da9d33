# ownables/cid/calculator.py
"""
Content identifier for an ownable package.

Included entries are placed under a virtual `package/` directory, chunked,
and assembled into a UnixFS-style Merkle DAG in hash-only mode. The CID of
the `package` directory node identifies the bundle. Paths are sorted before
structuring, so archive entry order never affects the result.
"""

import fnmatch
import logging
import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Tuple, Union

from multiformats import CID

from ownables.core.errors import CidComputationError, EmptyInputError

from . import dagpb
from .blockstore import HashOnlyBlockstore

logger = logging.getLogger(__name__)

CHUNK_SIZE = 262144
MAX_CHILDREN_PER_NODE = 174
VIRTUAL_ROOT = "package"
CHAIN_ENTRY = "chain.json"


@dataclass(frozen=True)
class CidConfig:
    chunk_size: int = CHUNK_SIZE
    raw_leaves: bool = True
    cid_version: int = 1
    max_children: int = MAX_CHILDREN_PER_NODE


PRIMARY_CONFIG = CidConfig()
# importer defaults: dag-pb leaves, CIDv0 (base58btc "Qm...")
FALLBACK_CONFIG = CidConfig(raw_leaves=False, cid_version=0)


@dataclass(frozen=True)
class _Node:
    cid: CID
    tsize: int          # cumulative DAG size, used in parent links
    filesize: int = 0   # payload bytes under this node (files only)


# ── filtering ───────────────────────────────────────────────────────────────

def normalize_path(name: str) -> str:
    name = name.replace("\\", "/")
    while name.startswith("./"):
        name = name[2:]
    return name.lstrip("/")


def is_excluded(path: str, patterns: Iterable[str] = ()) -> bool:
    """
    chain.json (any case, any directory), dotfiles (any segment) and caller
    glob patterns are excluded.
    """
    base = posixpath.basename(path)
    if base.lower() == CHAIN_ENTRY:
        return True
    if any(part.startswith(".") for part in path.split("/") if part):
        return True
    for pattern in patterns:
        if pattern.endswith("/"):
            if path.startswith(pattern):
                return True
        elif fnmatch.fnmatchcase(path, pattern) or fnmatch.fnmatchcase(base, pattern):
            return True
    return False


def included_entries(entries: Mapping[str, bytes], exclude: Iterable[str] = ()) -> List[Tuple[str, bytes]]:
    patterns = tuple(exclude)
    files = []
    for name, content in entries.items():
        path = normalize_path(name)
        if not path or path.endswith("/"):
            continue
        if is_excluded(path, patterns):
            continue
        files.append((path, bytes(content)))
    files.sort(key=lambda item: item[0].encode("utf-8"))
    return files


# ── DAG construction ────────────────────────────────────────────────────────

class _DagBuilder:

    def __init__(self, config: CidConfig, store: HashOnlyBlockstore):
        self.config = config
        self.store = store

    def _put(self, block: bytes, codec: str) -> CID:
        cid = dagpb.make_cid(block, codec, self.config.cid_version)
        self.store.put(cid, block)
        return cid

    def _leaf(self, chunk: bytes) -> _Node:
        if self.config.raw_leaves:
            return _Node(self._put(chunk, dagpb.RAW), len(chunk), len(chunk))
        data = dagpb.unixfs_data(dagpb.UNIXFS_FILE, chunk, filesize=len(chunk))
        block = dagpb.encode_node([], data)
        return _Node(self._put(block, dagpb.DAG_PB), len(block), len(chunk))

    def _file_parent(self, children: List[_Node]) -> _Node:
        links = [dagpb.PBLink(c.cid, "", c.tsize) for c in children]
        filesize = sum(c.filesize for c in children)
        data = dagpb.unixfs_data(
            dagpb.UNIXFS_FILE, filesize=filesize, blocksizes=[c.filesize for c in children]
        )
        block = dagpb.encode_node(links, data)
        tsize = len(block) + sum(c.tsize for c in children)
        return _Node(self._put(block, dagpb.DAG_PB), tsize, filesize)

    def file(self, content: bytes) -> _Node:
        size = self.config.chunk_size
        if size <= 0:
            raise ValueError("chunk size must be positive")
        chunks = [content[i:i + size] for i in range(0, len(content), size)] or [b""]
        layer = [self._leaf(c) for c in chunks]
        width = self.config.max_children
        while len(layer) > 1:
            layer = [self._file_parent(layer[i:i + width]) for i in range(0, len(layer), width)]
        return layer[0]

    def directory(self, tree: Dict[str, object]) -> _Node:
        links = []
        for name in sorted(tree, key=lambda n: n.encode("utf-8")):
            child = tree[name]
            node = self.directory(child) if isinstance(child, dict) else self.file(child)
            links.append(dagpb.PBLink(node.cid, name, node.tsize))
        block = dagpb.encode_node(links, dagpb.unixfs_data(dagpb.UNIXFS_DIRECTORY))
        tsize = len(block) + sum(link.tsize for link in links)
        return _Node(self._put(block, dagpb.DAG_PB), tsize)


def _build_tree(files: List[Tuple[str, bytes]]) -> Dict[str, object]:
    root: Dict[str, object] = {}
    for path, content in files:
        *dirs, leaf = path.split("/")
        node = root
        for part in dirs:
            if not part:
                continue
            child = node.setdefault(part, {})
            if not isinstance(child, dict):
                raise ValueError(f"Path conflicts with a file: {path}")
            node = child
        if leaf in node:
            raise ValueError(f"Duplicate or conflicting path: {path}")
        node[leaf] = content
    return {VIRTUAL_ROOT: root}


def _directory_cid(files: List[Tuple[str, bytes]], config: CidConfig) -> CID:
    tree = _build_tree(files)
    builder = _DagBuilder(config, HashOnlyBlockstore())
    return builder.directory(tree[VIRTUAL_ROOT]).cid


# ── public API ──────────────────────────────────────────────────────────────

def compute_cid(package: Union[Mapping[str, bytes], object], exclude: Iterable[str] = ()) -> CID:
    """
    CID of a package's non-volatile entries.

    `package` is a Package or any path → bytes mapping. Raises EmptyInputError
    when nothing is left after filtering, CidComputationError when both the
    primary and the fallback configuration fail.
    """
    entries = getattr(package, "entries", package)
    files = included_entries(entries, exclude)
    if not files:
        raise EmptyInputError("No files found to process after filtering")

    try:
        return _directory_cid(files, PRIMARY_CONFIG)
    except (ValueError, TypeError, OverflowError) as primary_error:
        logger.warning("CID calculation failed (%s), retrying with fallback options", primary_error)
        try:
            return _directory_cid(files, FALLBACK_CONFIG)
        except (ValueError, TypeError, OverflowError) as e:
            raise CidComputationError(f"CID calculation failed: {e}") from e


def compute_directory_cid(directory: Union[str, Path], exclude: Iterable[str] = ()) -> CID:
    """Same identifier computed from an unpacked package directory on disk."""
    base = Path(directory)
    if not base.is_dir():
        raise FileNotFoundError(f"Not a directory: {base}")
    entries = {
        p.relative_to(base).as_posix(): p.read_bytes()
        for p in base.rglob("*")
        if p.is_file()
    }
    return compute_cid(entries, exclude)
