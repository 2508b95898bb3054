"""
Avail Transaction Manager

Drives one balance transfer from inputs to a terminal result:
1. Derive sender keypair from the seed phrase
2. Scale the amount to planck
3. Validate the recipient address
4. Query sender balance and estimate the fee
5. Refuse when balance < amount + fee
6. Sign and submit Balances.transfer_keep_alive
7. Follow status updates until finalized or rejected

send_transaction never raises; every failure becomes a TransactionResult
with success=False.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple, Union

from loguru import logger
from substrateinterface import Keypair

from .balance_format import BalanceFormatter
from .chain_connector import ChainConnector, ChainMetadata, SubstrateConnector
from .config import TransferConfig
from .errors import (
    ChainConnectionError,
    FeeEstimationError,
    InsufficientBalanceError,
    TransferError,
)
from .keyring import check_address, derive_keypair
from .submission import SubmissionTracker


Amount = Union[Decimal, int, float, str]


@dataclass
class TransactionResult:
    """Terminal result of one transfer attempt"""
    success: bool
    tx_hash: Optional[str] = None
    block_hash: Optional[str] = None
    amount: Optional[str] = None
    fee: Optional[str] = None
    error_message: Optional[str] = None
    error_type: Optional[str] = None
    completed_at: Optional[datetime] = None

    def __post_init__(self):
        if self.completed_at is None:
            self.completed_at = datetime.now(timezone.utc)

    @classmethod
    def failure(cls, error: BaseException) -> "TransactionResult":
        return cls(success=False, error_message=str(error), error_type=type(error).__name__)

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            data = {
                'success': True,
                'txHash': self.tx_hash,
                'blockHash': self.block_hash,
                'amount': self.amount,
                'fee': self.fee,
            }
        else:
            data = {
                'success': False,
                'error': self.error_message,
                'errorType': self.error_type,
            }
        data['completedAt'] = self.completed_at.isoformat()
        return data


class AvailTransactionManager:
    """
    Transfer orchestrator for one node connection

    Usage:
        async with AvailTransactionManager(config) as manager:
            result = await manager.send_transaction(seed, recipient, 1.5)
    """

    def __init__(
        self,
        config: Optional[TransferConfig] = None,
        connector: Optional[ChainConnector] = None
    ):
        """
        Initialize transaction manager

        Args:
            config: Transfer configuration (defaults if omitted)
            connector: Chain connector (SubstrateConnector if omitted)
        """
        self.config = config or TransferConfig()
        self.connector = connector or SubstrateConnector(
            ss58_format=self.config.ss58_format,
            transfer_call=self.config.transfer_call,
            type_registry=self.config.type_registry,
            default_decimals=self.config.default_decimals,
            default_token=self.config.default_token,
        )

        self.chain: Optional[ChainMetadata] = None
        self.formatter: Optional[BalanceFormatter] = None

    @property
    def is_connected(self) -> bool:
        return self.chain is not None

    async def __aenter__(self) -> "AvailTransactionManager":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.disconnect()

    async def initialize(self) -> ChainMetadata:
        """
        Connect to the node and set up balance formatting

        Raises:
            ChainConnectionError: endpoint unreachable or handshake failed
        """
        logger.info(f"🔄 Connecting to Avail network: {self.config.node_url}")

        try:
            chain = await self.connector.connect(self.config.node_url)
        except ChainConnectionError as e:
            logger.error(f"❌ Failed to initialize: {e}")
            raise

        self.chain = chain
        self.formatter = BalanceFormatter(
            decimals=chain.decimals,
            unit=chain.token_symbol,
            display_decimals=self.config.display_decimals,
        )

        logger.info(f"✅ Connected to {chain.chain_name} ({chain.node_version})")
        logger.debug(f"Chain decimals: {chain.decimals}, token: {chain.token_symbol}")
        return chain

    def _require_formatter(self) -> BalanceFormatter:
        if self.formatter is None:
            raise ChainConnectionError("Transaction manager is not initialized")
        return self.formatter

    def derive_keypair(self, seed_phrase: str) -> Tuple[Keypair, str]:
        """
        Derive the sender keypair (offline)

        Raises:
            InvalidSeedError: malformed mnemonic
        """
        return derive_keypair(
            seed_phrase,
            ss58_format=self.config.ss58_format,
            crypto_type=self.config.crypto_type,
        )

    def validate_address(self, address: str) -> None:
        """
        Raises:
            InvalidAddressError: address is not on the configured network
        """
        check_address(address, self.config.ss58_format)

    async def get_balance(self, address: str) -> int:
        """
        Free balance of an account in planck

        Raises:
            InvalidAddressError: before any query is made
            BalanceQueryError: the node query failed
        """
        self.validate_address(address)
        formatter = self._require_formatter()

        balance = await self.connector.get_account_balance(address)
        logger.info(f"💰 Balance for {address}: {formatter.format(balance, with_unit=True)}")
        return balance

    async def estimate_fee(self, keypair: Keypair, recipient: str, amount: int) -> int:
        """
        Estimated partial fee in planck for transferring amount to recipient

        Raises:
            FeeEstimationError: call construction or payment info failed
        """
        fee, _ = await self._estimate_fee_with_call(keypair, recipient, amount)
        return fee

    async def _estimate_fee_with_call(self, keypair: Keypair, recipient: str, amount: int) -> Tuple[int, Any]:
        formatter = self._require_formatter()

        try:
            call = await self.connector.build_transfer(recipient, amount)
            fee = await self.connector.estimate_fee(call, keypair)
        except FeeEstimationError:
            raise
        except TransferError as e:
            raise FeeEstimationError(str(e)) from e

        logger.info(f"💸 Estimated fee: {formatter.format(fee, with_unit=True)}")
        return fee, call

    async def send_transaction(
        self,
        seed_phrase: str,
        recipient_address: str,
        amount: Amount
    ) -> TransactionResult:
        """
        Transfer amount (major units) from the seed's account to recipient

        Args:
            seed_phrase: Sender mnemonic
            recipient_address: SS58 address on the configured network
            amount: Amount in major units, e.g. 1.5 for 1.5 AVAIL

        Returns:
            TransactionResult; never raises
        """
        try:
            # Step 1: Sender keypair (offline, fails fast)
            keypair, sender = self.derive_keypair(seed_phrase)

            # Step 2: Scale to planck
            formatter = self._require_formatter()
            planck = formatter.to_planck(amount)

            # Step 3: Recipient on the right network
            self.validate_address(recipient_address)

            # Step 4: Balance and fee
            balance = await self.get_balance(sender)
            fee, call = await self._estimate_fee_with_call(keypair, recipient_address, planck)

            # Step 5: Sufficiency
            total_needed = planck + fee
            if balance < total_needed:
                raise InsufficientBalanceError(
                    f"Insufficient balance. Need {formatter.format(total_needed, with_unit=True)}, "
                    f"but only have {formatter.format(balance, with_unit=True)}",
                    needed=total_needed,
                    available=balance,
                )

            display_amount = f"{formatter.to_major(planck).normalize():f}"
            logger.info(
                f"🚀 Sending {display_amount} {formatter.unit} from {sender} to {recipient_address}"
            )

            # Steps 6-7: Submit and follow
            tracker = SubmissionTracker()
            watch = asyncio.ensure_future(
                self.connector.submit_and_watch(call, keypair, tracker.on_status)
            )
            watch.add_done_callback(tracker.watch_finished)

            try:
                outcome = await tracker.wait(self.config.finalization_timeout)
            finally:
                if not watch.done():
                    watch.cancel()

            if outcome.error is not None:
                raise outcome.error

            logger.info(f"📋 Transaction hash: {outcome.extrinsic_hash}")
            logger.info(f"🔗 Block hash: {outcome.block_hash}")

            return TransactionResult(
                success=True,
                tx_hash=outcome.extrinsic_hash,
                block_hash=outcome.block_hash,
                amount=display_amount,
                fee=formatter.format(fee),
            )

        except TransferError as e:
            logger.error(f"❌ Transaction error: {e}")
            return TransactionResult.failure(e)

        except Exception as e:
            logger.exception(f"❌ Unexpected transaction error: {e}")
            return TransactionResult.failure(e)

    async def disconnect(self):
        """Release the node connection; no-op when never connected"""
        was_connected = self.is_connected
        self.chain = None
        self.formatter = None

        await self.connector.close()
        if was_connected:
            logger.info("🔌 Disconnected from network")


async def run_transfer(
    seed_phrase: str,
    recipient_address: str,
    amount: Amount,
    endpoint: Optional[str] = None,
    config: Optional[TransferConfig] = None,
    connector: Optional[ChainConnector] = None
) -> TransactionResult:
    """
    Connect, send one transfer, disconnect

    Args:
        seed_phrase: Sender mnemonic
        recipient_address: Recipient SS58 address
        amount: Amount in major units
        endpoint: Node URL (overrides config)
        config: Transfer configuration
        connector: Chain connector override

    Returns:
        TransactionResult; connection failures are returned, not raised
    """
    config = (config or TransferConfig()).with_endpoint(endpoint)
    manager = AvailTransactionManager(config, connector=connector)

    try:
        await manager.initialize()
        return await manager.send_transaction(seed_phrase, recipient_address, amount)
    except TransferError as e:
        return TransactionResult.failure(e)
    finally:
        await manager.disconnect()
