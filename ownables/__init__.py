# ownables/__init__.py
"""
Ownables: package, fingerprint and transfer digital asset bundles with a
signed, hash-linked provenance chain anchored on a public ledger.
"""

__version__ = "0.1.0"
