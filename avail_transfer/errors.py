"""
Transfer Errors

Exception hierarchy for the transfer flow. Everything raised on the
submission path derives from TransferError so the orchestrator can turn it
into a failed TransactionResult at one boundary.
"""

from typing import Optional


class TransferError(Exception):
    """Base class for all transfer errors"""


class ChainConnectionError(TransferError, ConnectionError):
    """Node endpoint unreachable or handshake failed"""


class InvalidSeedError(TransferError):
    """Seed phrase fails mnemonic word-count or checksum rules"""


class InvalidAddressError(TransferError):
    """Address does not decode under the configured SS58 format"""


class InvalidAmountError(TransferError):
    """Amount is negative, too precise, or overflows the balance type"""


class BalanceQueryError(TransferError):
    """Account balance could not be read from chain state"""


class FeeEstimationError(TransferError):
    """Payment info query for the transfer failed"""


class InsufficientBalanceError(TransferError):
    """Sender cannot cover amount + estimated fee"""

    def __init__(self, message: str, needed: int, available: int):
        super().__init__(message)
        self.needed = needed
        self.available = available


class SubmissionError(TransferError):
    """Extrinsic was rejected, dropped, or failed on dispatch"""

    def __init__(self, message: str, status: Optional[str] = None):
        super().__init__(message)
        self.status = status


class SubmissionTimeoutError(TransferError, TimeoutError):
    """No terminal status arrived within the finalization timeout"""
