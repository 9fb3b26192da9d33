# ownables/core/errors.py
"""
Error taxonomy for the transfer pipeline.

Input and balance errors are raised before any side effect. Chain errors are
never repaired. Anchoring and delivery errors abort the current iteration and
the run. Thumbnail errors are recoverable and only ever logged.
"""

from typing import Optional


class OwnablesError(Exception):
    """Base class for every error raised by this package."""


# ── input ────────────────────────────────────────────────────────────────────

class InputError(OwnablesError):
    pass


class NotFoundError(InputError):
    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class MalformedArchiveError(InputError):
    def __init__(self, message: str, entry: Optional[str] = None):
        super().__init__(message)
        self.entry = entry


class AmbiguousOrMissingArchiveError(InputError):
    def __init__(self, message: str, candidates: Optional[list] = None):
        super().__init__(message)
        self.candidates = candidates or []


class InvalidTransferRequestError(InputError):
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


# ── balance ──────────────────────────────────────────────────────────────────

class InsufficientBalanceError(OwnablesError):
    def __init__(self, balance, required):
        super().__init__(f"Insufficient balance: {balance} available, {required} required")
        self.balance = balance
        self.required = required


class BalanceQueryError(OwnablesError):
    pass


# ── event chain ──────────────────────────────────────────────────────────────

class ChainError(OwnablesError):
    pass


class ChainParseError(ChainError):
    def __init__(self, message: str, index: Optional[int] = None):
        super().__init__(message if index is None else f"{message} (event {index})")
        self.index = index


class ChainIntegrityError(ChainError):
    def __init__(self, message: str, failures: Optional[list] = None):
        super().__init__(message)
        self.failures = failures or []

    @property
    def index(self) -> Optional[int]:
        return self.failures[0].index if self.failures else None


# ── content identifier ───────────────────────────────────────────────────────

class CidError(OwnablesError):
    pass


class EmptyInputError(CidError):
    pass


class CidComputationError(CidError):
    pass


# ── thumbnail / network ──────────────────────────────────────────────────────

class ThumbnailError(OwnablesError):
    pass


class AnchoringError(OwnablesError):
    pass


class DeliveryError(OwnablesError):
    pass


class TransferAborted(OwnablesError):
    """
    A transfer iteration failed. Iterations that already completed are not
    rolled back; `results` holds their reports.
    """

    def __init__(self, iteration: int, results: list, cause: Exception):
        self.iteration = iteration
        self.results = list(results)
        self.cause = cause
        super().__init__(
            f"Transfer aborted at iteration {iteration} after {self.completed} completed: {cause}"
        )

    @property
    def completed(self) -> int:
        return len(self.results)
