# ownables/cid/dagpb.py
"""
Minimal dag-pb / UnixFS node encoding.

Only the subset needed to hash a tree of files is implemented: UnixFS File
and Directory nodes and their PBNode envelope. Multihashes and CIDs come
from multiformats.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from multiformats import CID, multihash, varint

RAW = "raw"
DAG_PB = "dag-pb"

UNIXFS_RAW = 0
UNIXFS_DIRECTORY = 1
UNIXFS_FILE = 2


def _field_varint(number: int, value: int) -> bytes:
    return varint.encode(number << 3) + varint.encode(value)


def _field_bytes(number: int, value: bytes) -> bytes:
    return varint.encode((number << 3) | 2) + varint.encode(len(value)) + value


def make_cid(block: bytes, codec: str, version: int = 1) -> CID:
    """sha2-256 CID of `block`. v0 only exists for dag-pb and prints in base58btc."""
    digest = multihash.digest(block, "sha2-256")
    if version == 0:
        if codec != DAG_PB:
            raise ValueError("CIDv0 requires dag-pb nodes")
        return CID("base58btc", 0, DAG_PB, digest)
    if version != 1:
        raise ValueError(f"Unsupported CID version: {version}")
    return CID("base32", 1, codec, digest)


@dataclass(frozen=True)
class PBLink:
    cid: CID
    name: Optional[str]
    tsize: int

    def encode(self) -> bytes:
        out = _field_bytes(1, bytes(self.cid))
        if self.name is not None:
            out += _field_bytes(2, self.name.encode("utf-8"))
        out += _field_varint(3, self.tsize)
        return out


def unixfs_data(kind: int, data: bytes = b"", filesize: Optional[int] = None,
                blocksizes: Sequence[int] = ()) -> bytes:
    out = _field_varint(1, kind)
    if data:
        out += _field_bytes(2, data)
    if filesize is not None:
        out += _field_varint(3, filesize)
    for size in blocksizes:
        out += _field_varint(4, size)
    return out


def encode_node(links: List[PBLink], data: bytes) -> bytes:
    """PBNode in canonical order: links first, then data."""
    out = b"".join(_field_bytes(2, link.encode()) for link in links)
    return out + _field_bytes(1, data)
