"""
Error types raised by the receipt ledger.
"""


class ReceiptLedgerError(Exception):
    """Base class for all receipt ledger errors."""


class OcrError(ReceiptLedgerError):
    """Text extraction failed or returned too little text."""


class ParseError(ReceiptLedgerError):
    """The structuring service failed or returned an invalid shape."""


class RemoteError(ReceiptLedgerError):
    """A single operation against the remote store failed."""


class RemoteUnavailable(RemoteError):
    """The remote store cannot be reached at all."""


class SnapshotError(ReceiptLedgerError):
    """The local snapshot is unreadable or corrupt."""


class InvariantViolation(ReceiptLedgerError):
    """The canonical record set broke one of its invariants."""
