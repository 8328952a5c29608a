from __future__ import annotations

from dataclasses import dataclass

from .types import QueuedTransaction, ReadinessTier, WalletInfo

# Share of required confirmations, in tenths, at which a transaction counts as nearly ready.
NEARLY_READY_TENTHS = 7


@dataclass(frozen=True)
class SignerPartition:
    signed: tuple[str, ...]
    unsigned: tuple[str, ...]


@dataclass(frozen=True)
class TransactionStatus:
    tier: ReadinessTier
    partition: SignerPartition | None


def normalize_address(address: str) -> str:
    """EVM addresses compare case-insensitively; checksum casing is display only."""
    return address.lower()


def same_address(a: str, b: str) -> bool:
    return normalize_address(a) == normalize_address(b)


def nearly_ready_floor(required: int) -> int:
    """ceil(required * 0.7) without going through floats."""
    return -(-required * NEARLY_READY_TENTHS // 10)


def readiness_tier(signed: int, required: int) -> ReadinessTier:
    if signed >= required:
        return ReadinessTier.READY
    if signed >= nearly_ready_floor(required):
        return ReadinessTier.NEARLY_READY
    return ReadinessTier.NEEDS_ATTENTION


def partition_signers(
    tx: QueuedTransaction, owners: tuple[str, ...] | list[str] | None
) -> SignerPartition | None:
    """Split wallet owners into signed and unsigned for one transaction.

    An explicit missing-signer list wins. Without one we fall back to matching
    ``confirmed_owners`` against the owner list. That fallback is degraded: the
    queue endpoint fills ``confirmed_owners`` with placeholder entries, so every
    owner ends up unsigned even when confirmations exist. Placeholders are not
    mapped onto real owners.
    """
    if not owners:
        return None

    if tx.missing_signers:
        unsigned = tuple(normalize_address(addr) for addr in tx.missing_signers)
        missing = set(unsigned)
        signed = tuple(o for o in owners if normalize_address(o) not in missing)
        return SignerPartition(signed=signed, unsigned=unsigned)

    confirmed = {normalize_address(c) for c in tx.confirmed_owners}
    signed = tuple(o for o in owners if normalize_address(o) in confirmed)
    unsigned = tuple(o for o in owners if normalize_address(o) not in confirmed)
    return SignerPartition(signed=signed, unsigned=unsigned)


def resolve_status(tx: QueuedTransaction, wallet_info: WalletInfo | None) -> TransactionStatus:
    owners = wallet_info.owners if wallet_info is not None else None
    return TransactionStatus(
        tier=readiness_tier(tx.signed_count, tx.confirmations_required),
        partition=partition_signers(tx, owners),
    )
