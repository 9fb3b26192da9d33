# ownables/transfer/orchestrator.py
"""
Transfer orchestration.

One invocation walks

    LOCATE → PARSE → CONFIGURE → BALANCE_CHECK
        → [EXTEND_CHAIN → COMPUTE_CID → ANCHOR → REPACKAGE → DELIVER] × N → DONE

Everything before the first EXTEND_CHAIN is side-effect free, so input and
balance errors never touch the chain or the network. Iterations run strictly
one after another; the package on disk is only replaced after an iteration's
anchor and delivery both succeeded, so an interrupted run leaves the last
good package behind.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from ownables.archive import (
    CHAIN_ENTRY,
    TIMESTAMP_ENTRY,
    Package,
    locate_single_archive,
    package_bytes,
    read_package,
    write_package,
    write_volatile,
)
from ownables.chain.event_chain import EventChain, anchor_map
from ownables.cid import compute_cid
from ownables.config import MAX_TRANSFER_COUNT, MIN_TRANSFER_COUNT, NetworkProfile, Settings, get_network
from ownables.core.encoding import data_uri
from ownables.core.errors import (
    InsufficientBalanceError,
    InvalidTransferRequestError,
    OwnablesError,
    TransferAborted,
)
from ownables.core.types import CONTEXT_SCHEMAS, IterationResult
from ownables.crypto.keys import Account, is_valid_address
from ownables.network.node import NodeClient
from ownables.network.relay import Message, RelayClient

from .thumbnail import THUMBNAIL_MIME, ResizeAndEncode, budget_thumbnail, pillow_resize_and_encode

logger = logging.getLogger(__name__)

PACKAGE_MEDIA_TYPE = "application/octet-stream"
SENT_FROM = "ownables cli"


class TransferStage(Enum):
    LOCATE = "locate"
    PARSE = "parse"
    CONFIGURE = "configure"
    BALANCE_CHECK = "balance_check"
    EXTEND_CHAIN = "extend_chain"
    COMPUTE_CID = "compute_cid"
    ANCHOR = "anchor"
    REPACKAGE = "repackage"
    DELIVER = "deliver"
    DONE = "done"


@dataclass(frozen=True)
class TransferRequest:
    recipient_address: str
    network: str
    relay_endpoint: str
    transfer_count: int
    identity: Account

    def validate(self) -> NetworkProfile:
        """Raises InvalidTransferRequestError; returns the selected network."""
        try:
            profile = get_network(self.network)
        except ValueError as e:
            raise InvalidTransferRequestError(str(e), "network") from e

        count = self.transfer_count
        if isinstance(count, bool) or not isinstance(count, int) \
                or not MIN_TRANSFER_COUNT <= count <= MAX_TRANSFER_COUNT:
            raise InvalidTransferRequestError(
                f"Transfer count must be between {MIN_TRANSFER_COUNT} and {MAX_TRANSFER_COUNT}, got {count!r}",
                "transfer_count",
            )
        if not is_valid_address(self.recipient_address, profile.network_id):
            raise InvalidTransferRequestError(
                f"Invalid {profile.name} address: {self.recipient_address!r}", "recipient_address"
            )
        if not self.relay_endpoint or not self.relay_endpoint.startswith(("http://", "https://")):
            raise InvalidTransferRequestError(
                f"Relay URL must be an http(s) URL: {self.relay_endpoint!r}", "relay_endpoint"
            )
        if not self.identity.can_sign:
            raise InvalidTransferRequestError("Signing identity has no private key", "identity")
        try:
            self.identity.address(profile.network_id)
        except ValueError as e:
            raise InvalidTransferRequestError(str(e), "identity") from e
        return profile


@dataclass
class TransferReport:
    package_path: Path
    chain_id: str
    results: List[IterationResult] = field(default_factory=list)

    @property
    def completed(self) -> int:
        return len(self.results)


class TransferOrchestrator:
    """
    Drives one transfer invocation. The orchestrator is the only owner of the
    in-memory Package and EventChain while it runs.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        node: Optional[NodeClient] = None,
        relay: Optional[RelayClient] = None,
        resize_and_encode: ResizeAndEncode = pillow_resize_and_encode,
        sleep: Callable = asyncio.sleep,
    ):
        self.settings = settings or Settings()
        self._node = node
        self._relay = relay
        self._resize = resize_and_encode
        self._sleep = sleep
        self.stage: Optional[TransferStage] = None

    def _enter(self, stage: TransferStage, iteration: Optional[int] = None) -> None:
        self.stage = stage
        if iteration is None:
            logger.debug("Stage %s", stage.name)
        else:
            logger.debug("Iteration %d: stage %s", iteration, stage.name)

    async def run(
        self,
        request: TransferRequest,
        directory: Optional[Path] = None,
        archive: Optional[Path] = None,
    ) -> TransferReport:
        # LOCATE
        self._enter(TransferStage.LOCATE)
        if archive is None:
            archive = await asyncio.to_thread(locate_single_archive, directory or Path.cwd())
        logger.info("Found ZIP file: %s", Path(archive).name)

        # PARSE
        self._enter(TransferStage.PARSE)
        package = await asyncio.to_thread(read_package, archive)
        logger.info("Title: %s | Version: %s | Keywords: %s",
                    package.name, package.version, ", ".join(package.keywords) or "-")
        chain: Optional[EventChain] = None
        if package.chain_state is not None:
            chain = EventChain.load(package.chain_state)
            logger.info("Found existing %s with %d events", CHAIN_ENTRY, chain.length)
        thumbnail = None
        if package.thumbnail is not None:
            thumbnail = await asyncio.to_thread(budget_thumbnail, package.thumbnail, self._resize)

        # CONFIGURE
        self._enter(TransferStage.CONFIGURE)
        profile = request.validate()
        node = self._node or NodeClient(
            profile.name,
            base_url=self.settings.node_url,
            timeout=self.settings.timeout,
        )
        relay = self._relay or RelayClient(request.relay_endpoint, timeout=self.settings.timeout)

        # BALANCE_CHECK
        self._enter(TransferStage.BALANCE_CHECK)
        sender = request.identity.address(profile.network_id)
        balance = await node.balance(sender)
        required = self.settings.transfer_fee * request.transfer_count
        if balance < required:
            raise InsufficientBalanceError(balance, required)
        logger.info("Balance %s covers %d transfer(s) (%s required)", balance, request.transfer_count, required)

        if chain is None:
            chain = EventChain.create(request.identity)
            last_anchored = None
        else:
            last_anchored = chain.latest_hash if chain.events else None

        report = TransferReport(package_path=Path(archive), chain_id=chain.id)
        for iteration in range(1, request.transfer_count + 1):
            try:
                result, package = await self._iteration(
                    iteration, request, profile, node, relay, package, chain, last_anchored, thumbnail
                )
            except (OwnablesError, ValueError, OSError) as e:
                logger.error("Transfer iteration %d failed: %s", iteration, e)
                raise TransferAborted(iteration, report.results, e) from e

            last_anchored = chain.latest_hash
            report.results.append(result)
            logger.info("Iteration %d/%d delivered, message hash %s",
                        iteration, request.transfer_count, result.message_hash)
            if iteration < request.transfer_count and self.settings.iteration_delay > 0:
                await self._sleep(self.settings.iteration_delay)

        self._enter(TransferStage.DONE)
        return report

    async def _iteration(
        self,
        iteration: int,
        request: TransferRequest,
        profile: NetworkProfile,
        node: NodeClient,
        relay: RelayClient,
        package: Package,
        chain: EventChain,
        last_anchored: Optional[str],
        thumbnail: Optional[bytes],
    ):
        self._enter(TransferStage.EXTEND_CHAIN, iteration)
        if chain.length == 0:
            chain.append("create", create_payload(chain, package, profile), request.identity)
        chain.append("transfer", transfer_payload(chain, package, profile, request.recipient_address),
                     request.identity)

        self._enter(TransferStage.COMPUTE_CID, iteration)
        cid = str(compute_cid(package, exclude=(TIMESTAMP_ENTRY,)))
        logger.info("CID calculated: %s", cid)

        self._enter(TransferStage.ANCHOR, iteration)
        commitment = None
        anchors = anchor_map(chain.unanchored_since(last_anchored))
        if anchors:
            commitment = await node.anchor(request.identity, anchors)
            logger.info("Anchor transaction: %s", commitment.explorer_url)

        self._enter(TransferStage.REPACKAGE, iteration)
        updated = write_volatile(package, {
            CHAIN_ENTRY: chain.serialize(),
            TIMESTAMP_ENTRY: uniqueness_stamp(iteration).encode("utf-8"),
        })
        data = await asyncio.to_thread(package_bytes, updated)

        self._enter(TransferStage.DELIVER, iteration)
        message = Message.build(
            data,
            PACKAGE_MEDIA_TYPE,
            {
                "title": package.name,
                "description": package.description,
                "type": "ownable",
                "cid": cid,
                "thumbnail": data_uri(thumbnail, THUMBNAIL_MIME) if thumbnail else None,
            },
            recipient=request.recipient_address,
            sender=request.identity,
        )
        await relay.send(message)
        await asyncio.to_thread(write_package, updated, updated.path)

        return IterationResult(iteration, message.hash, cid, commitment), updated


def create_payload(chain: EventChain, package: Package, profile: NetworkProfile) -> dict:
    return {
        "@context": CONTEXT_SCHEMAS["create"],
        "ownable_id": chain.id,
        "network_id": profile.network_id,
        "title": package.name,
        "version": package.version,
        "keywords": package.keywords,
    }


def transfer_payload(chain: EventChain, package: Package, profile: NetworkProfile, recipient: str) -> dict:
    return {
        "@context": CONTEXT_SCHEMAS["transfer"],
        "ownable_id": chain.id,
        "network_id": profile.network_id,
        "title": package.name,
        "keywords": package.keywords,
        "recipient": recipient,
        "sent_from": SENT_FROM,
    }


def uniqueness_stamp(iteration: int) -> str:
    return f"{datetime.now(timezone.utc).isoformat(timespec='microseconds')} #{iteration}"
