# ownables/cid/blockstore.py
from multiformats import CID


class HashOnlyBlockstore:
    """
    Storage capability for the DAG builder that keeps nothing.
    Only block hashes are needed to derive the root identifier.
    """

    def __init__(self):
        self.blocks_seen = 0
        self.bytes_seen = 0

    def put(self, cid: CID, block: bytes) -> None:
        self.blocks_seen += 1
        self.bytes_seen += len(block)

    def get(self, cid: CID) -> bytes:
        raise KeyError("Block not available in hash-only mode")

    def has(self, cid: CID) -> bool:
        return False
