"""
Decoding of action-server transactions.

Payloads are tried as versioned transactions first and as legacy transactions only if
that fails; most action servers emit versioned transactions and the legacy path keeps
older servers working.
"""

import base64
import binascii
from enum import Enum
from typing import Union

from solders.transaction import Transaction, VersionedTransaction

from mcp.server.fastmcp.utilities.logging import get_logger

from .errors import DecodeError

logger = get_logger(__name__)

TransactionVariant = Union[Transaction, VersionedTransaction]


class TransactionKind(str, Enum):
    LEGACY = "legacy"
    VERSIONED = "versioned"


class DecodedTransaction:
    """A transaction tagged with the encoding it was decoded from."""

    __slots__ = ("kind", "transaction")

    def __init__(self, kind: TransactionKind, transaction: TransactionVariant):
        self.kind = kind
        self.transaction = transaction

    @classmethod
    def wrap(cls, transaction: TransactionVariant) -> "DecodedTransaction":
        if isinstance(transaction, Transaction):
            return cls(TransactionKind.LEGACY, transaction)
        return cls(TransactionKind.VERSIONED, transaction)

    @property
    def is_versioned(self) -> bool:
        return self.kind is TransactionKind.VERSIONED

    def serialize(self) -> bytes:
        return bytes(self.transaction)

    def __repr__(self) -> str:
        return f"DecodedTransaction(kind={self.kind.value})"


def decode_transaction(base64_tx: str) -> DecodedTransaction:
    try:
        raw = base64.b64decode(base64_tx, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Transaction payload is not valid base64: {e}") from e

    try:
        return DecodedTransaction(TransactionKind.VERSIONED, VersionedTransaction.from_bytes(raw))
    except Exception as versioned_err:
        logger.debug(f"Not a versioned transaction ({versioned_err}), trying legacy encoding")

    try:
        return DecodedTransaction(TransactionKind.LEGACY, Transaction.from_bytes(raw))
    except Exception as legacy_err:
        raise DecodeError(
            f"Transaction payload is neither a versioned nor a legacy transaction: {legacy_err}"
        ) from legacy_err
