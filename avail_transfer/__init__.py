"""
Avail Transfer

Balance transfers on Avail (or any Substrate chain) with fee-aware
balance checks and finalization tracking.

Components:
- transaction_manager: Transfer orchestrator and TransactionResult
- chain_connector: Async node access over py-substrate-interface
- submission: Extrinsic status state machine
- keyring: Mnemonic, keypair and SS58 address handling
- balance_format: Planck <-> major unit conversion per chain
- config: YAML / environment configuration
- errors: Exception hierarchy

Flow:
1. Derive keypair - offline, fails fast on a bad seed
2. Scale amount - major units to planck
3. Validate recipient - SS58 network format
4. Balance + fee - both must be known
5. Sufficiency - balance >= amount + fee
6. Submit - sign and watch
7. Finalize - success, dispatch failure, or rejection
"""

from .transaction_manager import (
    AvailTransactionManager,
    TransactionResult,
    run_transfer,
)
from .chain_connector import (
    ChainConnector,
    ChainMetadata,
    DispatchError,
    ExtrinsicStatus,
    ModuleError,
    StatusUpdate,
    SubstrateConnector,
)
from .submission import (
    SubmissionOutcome,
    SubmissionState,
    SubmissionTracker,
)
from .balance_format import BalanceFormatter
from .config import TransferConfig
from .errors import (
    BalanceQueryError,
    ChainConnectionError,
    FeeEstimationError,
    InsufficientBalanceError,
    InvalidAddressError,
    InvalidAmountError,
    InvalidSeedError,
    SubmissionError,
    SubmissionTimeoutError,
    TransferError,
)

__all__ = [
    # Orchestrator
    'AvailTransactionManager',
    'TransactionResult',
    'run_transfer',

    # Chain access
    'ChainConnector',
    'ChainMetadata',
    'DispatchError',
    'ExtrinsicStatus',
    'ModuleError',
    'StatusUpdate',
    'SubstrateConnector',

    # Submission tracking
    'SubmissionOutcome',
    'SubmissionState',
    'SubmissionTracker',

    # Formatting and configuration
    'BalanceFormatter',
    'TransferConfig',

    # Errors
    'BalanceQueryError',
    'ChainConnectionError',
    'FeeEstimationError',
    'InsufficientBalanceError',
    'InvalidAddressError',
    'InvalidAmountError',
    'InvalidSeedError',
    'SubmissionError',
    'SubmissionTimeoutError',
    'TransferError',
]

__version__ = '1.0.0'
