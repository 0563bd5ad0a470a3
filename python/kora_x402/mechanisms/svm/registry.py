"""On-chain agent registry on Solana.

Each agent is a Metaplex Core asset whose URI points to its agent card.
Feedback about other agents is written as SPL Memo transactions.

With a Kora client every write uses Kora as fee payer, so no SOL is
needed. Registration is idempotent: the asset keypair is derived from
the owner and agent name, so every retry targets the same address, and
an "already exists" failure proves an earlier attempt landed.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solders.instruction import Instruction  # type: ignore
from solders.keypair import Keypair  # type: ignore
from solders.pubkey import Pubkey  # type: ignore
from spl.memo.constants import MEMO_PROGRAM_ID  # type: ignore
from spl.memo.instructions import MemoParams, create_memo  # type: ignore

from ...errors import IdempotentConflict, TransactionBuildFailure
from .constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY_SECONDS,
    REGISTRY_SEED_DOMAIN,
    SOLANA_MAINNET,
)
from .kora import KoraClient
from .mpl_core import create_v1, update_v1
from .signers import KeypairSigner
from .submit import SubmissionStrategy, submission_for
from .types import TransferResult
from .utils import get_rpc_url, normalize_network

logger = logging.getLogger(__name__)

ALREADY_REGISTERED = "already-registered"

_IDEMPOTENCY_MARKERS = (
    "already in use",
    "account already exists",
    "already initialized",
    "custom program error: 0x0",
)


@dataclass
class RetryPolicy:
    """Retry budget with linear backoff (``base_delay_seconds * attempt``)."""

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS

    def delay_for(self, attempt: int) -> float:
        return self.base_delay_seconds * attempt


@dataclass
class RegistryEntry:
    """The holder's registration record."""

    asset_address: str
    agent_uri: str
    network: str
    tx_signature: str
    registered_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "assetAddress": self.asset_address,
            "agentURI": self.agent_uri,
            "network": self.network,
            "txSignature": self.tx_signature,
            "registeredAt": self.registered_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RegistryEntry":
        return cls(
            asset_address=data["assetAddress"],
            agent_uri=data["agentURI"],
            network=data["network"],
            tx_signature=data["txSignature"],
            registered_at=data["registeredAt"],
        )


class RegistryStore(Protocol):
    """Persistent single-entry store for the registration record."""

    def get_registry_entry(self) -> RegistryEntry | None: ...

    def set_registry_entry(self, entry: RegistryEntry) -> None: ...


class JsonFileRegistryStore:
    """Keeps the registry entry in a JSON file."""

    def __init__(self, path: str | Path):
        self._path = Path(path)

    def get_registry_entry(self) -> RegistryEntry | None:
        if not self._path.exists():
            return None
        return RegistryEntry.from_dict(json.loads(self._path.read_text()))

    def set_registry_entry(self, entry: RegistryEntry) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(entry.to_dict(), indent=2))


def derive_asset_keypair(owner: str, agent_name: str) -> Keypair:
    """Derive the asset keypair for an (owner, name) pair.

    The same inputs always give the same asset address.
    """
    digest = hashlib.sha256()
    digest.update(REGISTRY_SEED_DOMAIN.encode())
    digest.update(owner.encode())
    digest.update(agent_name.encode())
    return Keypair.from_seed(digest.digest())


def is_idempotency_error(err: BaseException | str) -> bool:
    """Check whether an error means the target account already exists."""
    msg = str(err).lower()
    return any(marker in msg for marker in _IDEMPOTENCY_MARKERS)


def _utc_now_iso() -> str:
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


class SolanaRegistry:
    """Agent registration, URI updates and feedback memos for one holder.

    Args:
        signer: The agent's wallet.
        store: Where the registration record is kept.
        network: Cluster name.
        rpc_url: Custom Solana RPC URL.
        kora_client: When set, writes use Kora as fee payer.
        rpc_client: Injectable Solana RPC client.
        retry: Retry budget for registration.
        submission: Explicit submission strategy. Defaults to Kora when
            ``kora_client`` is set, direct otherwise.
    """

    def __init__(
        self,
        signer: KeypairSigner,
        store: RegistryStore,
        network: str = SOLANA_MAINNET,
        rpc_url: str | None = None,
        kora_client: KoraClient | None = None,
        rpc_client: Any = None,
        retry: RetryPolicy | None = None,
        submission: SubmissionStrategy | None = None,
    ):
        self._signer = signer
        self._store = store
        self._network = normalize_network(network)
        self._rpc_url = get_rpc_url(self._network, rpc_url)
        self._rpc_client = rpc_client
        self._owns_rpc_client = rpc_client is None
        self._retry = retry or RetryPolicy()
        self._submission = submission or submission_for(kora_client)

    def _rpc(self) -> Any:
        if self._rpc_client is None:
            self._rpc_client = AsyncClient(self._rpc_url, commitment=Confirmed)
        return self._rpc_client

    async def close(self) -> None:
        if self._rpc_client is not None and self._owns_rpc_client:
            await self._rpc_client.close()
            self._rpc_client = None

    def _failure(self, action: str, err: Exception) -> TransferResult:
        message = f"{self._submission.label} {action} failed: {err}"
        logger.error(message)
        return TransferResult(success=False, error=message)

    async def register_agent(self, agent_name: str, agent_card_uri: str) -> RegistryEntry:
        """Register the agent as a Metaplex Core asset.

        Returns the stored entry untouched when the holder is already
        registered on this network.

        Raises:
            TransactionBuildFailure: If every attempt in the retry budget failed.
        """
        existing = self._store.get_registry_entry()
        if existing and existing.network == self._network:
            return existing

        asset_keypair = derive_asset_keypair(self._signer.address, agent_name)
        asset_address = str(asset_keypair.pubkey())
        create_ix = create_v1(
            asset=asset_keypair.pubkey(),
            payer=self._signer.pubkey,
            name=agent_name,
            uri=agent_card_uri,
        )

        last_error: Exception | None = None
        for attempt in range(1, self._retry.max_retries + 1):
            try:
                signature = await self._create_asset(create_ix, asset_keypair)
            except IdempotentConflict as e:
                logger.info("Asset %s already exists, treating as registered: %s", asset_address, e)
                return self._save_entry(asset_address, agent_card_uri, ALREADY_REGISTERED)
            except Exception as e:
                last_error = e
                logger.warning(
                    "Registration attempt %s/%s failed: %s", attempt, self._retry.max_retries, e
                )
                if attempt < self._retry.max_retries:
                    await asyncio.sleep(self._retry.delay_for(attempt))
                continue

            logger.info("Registered agent %r as %s", agent_name, asset_address)
            return self._save_entry(asset_address, agent_card_uri, signature)

        raise TransactionBuildFailure(
            f"Failed to register agent after {self._retry.max_retries} attempts: {last_error}"
        )

    async def _create_asset(self, create_ix: Instruction, asset_keypair: Keypair) -> str:
        try:
            return await self._submission.submit(
                [create_ix],
                [self._signer.keypair, asset_keypair],
                self._rpc(),
            )
        except Exception as e:
            if is_idempotency_error(e):
                raise IdempotentConflict(str(e)) from e
            raise

    def _save_entry(self, asset_address: str, agent_uri: str, tx_signature: str) -> RegistryEntry:
        entry = RegistryEntry(
            asset_address=asset_address,
            agent_uri=agent_uri,
            network=self._network,
            tx_signature=tx_signature,
            registered_at=_utc_now_iso(),
        )
        self._store.set_registry_entry(entry)
        return entry

    async def update_agent_uri(self, asset_address: str, new_agent_uri: str) -> TransferResult:
        """Point the agent's asset at a new agent card URI."""
        update_ix = update_v1(
            asset=Pubkey.from_string(asset_address),
            payer=self._signer.pubkey,
            new_uri=new_agent_uri,
        )

        try:
            signature = await self._submission.submit([update_ix], [self._signer.keypair], self._rpc())
        except Exception as e:
            return self._failure("agent URI update", e)

        entry = self._store.get_registry_entry()
        if entry:
            entry.agent_uri = new_agent_uri
            entry.tx_signature = signature
            self._store.set_registry_entry(entry)

        return TransferResult(success=True, signature=signature)

    async def leave_feedback(self, target_agent_asset: str, score: int, comment: str) -> TransferResult:
        """Record reputation feedback about another agent as an on-chain memo."""
        payload = json.dumps(
            {
                "type": "agent-feedback",
                "targetAgent": target_agent_asset,
                "score": score,
                "comment": comment,
                "timestamp": _utc_now_iso(),
            },
            separators=(",", ":"),
        )
        memo_ix = create_memo(
            MemoParams(
                program_id=MEMO_PROGRAM_ID,
                signer=self._signer.pubkey,
                message=payload.encode("utf-8"),
            )
        )

        try:
            signature = await self._submission.submit([memo_ix], [self._signer.keypair], self._rpc())
        except Exception as e:
            return self._failure("feedback memo", e)

        return TransferResult(success=True, signature=signature)
