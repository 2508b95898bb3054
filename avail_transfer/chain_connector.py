"""
Chain Connector

Async access to a Substrate node:
- Connection handshake and chain metadata (decimals, token, name, version)
- Free balance queries
- Transfer call construction and fee estimation
- Signed submission with per-status callbacks

SubstrateConnector wraps the blocking py-substrate-interface client in a
single worker thread so calls never block the event loop and never run
concurrently against the one websocket.
"""

import asyncio
import functools
import json
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from loguru import logger
from substrateinterface import ExtrinsicReceipt, Keypair, SubstrateInterface

from .errors import (
    BalanceQueryError,
    ChainConnectionError,
    FeeEstimationError,
    SubmissionError,
    TransferError,
)


class ExtrinsicStatus(Enum):
    """Transaction pool statuses reported by author_submitAndWatchExtrinsic"""
    FUTURE = 'future'
    READY = 'ready'
    BROADCAST = 'broadcast'
    IN_BLOCK = 'inBlock'
    RETRACTED = 'retracted'
    FINALITY_TIMEOUT = 'finalityTimeout'
    FINALIZED = 'finalized'
    USURPED = 'usurped'
    DROPPED = 'dropped'
    INVALID = 'invalid'

    @property
    def is_rejection(self) -> bool:
        return self in _REJECTIONS

    @property
    def ends_subscription(self) -> bool:
        return self is ExtrinsicStatus.FINALIZED or self in _REJECTIONS


_REJECTIONS = frozenset({
    ExtrinsicStatus.DROPPED,
    ExtrinsicStatus.INVALID,
    ExtrinsicStatus.USURPED,
    ExtrinsicStatus.FINALITY_TIMEOUT,
})

_STATUS_BY_KEY = {status.value.lower(): status for status in ExtrinsicStatus}


@dataclass(frozen=True)
class ChainMetadata:
    """What the node reports about itself at connect time"""
    decimals: int
    token_symbol: str
    chain_name: str
    node_version: str


@dataclass(frozen=True)
class ModuleError:
    """Pallet error resolved from runtime metadata"""
    section: str
    name: str
    docs: Tuple[str, ...] = ()

    @property
    def message(self) -> str:
        return f"{self.section}.{self.name}: {' '.join(self.docs)}".rstrip()


@dataclass(frozen=True)
class DispatchError:
    """Dispatch failure of an included extrinsic"""
    raw: Any
    module: Optional[ModuleError] = None

    @property
    def message(self) -> str:
        if self.module is not None:
            return self.module.message
        if isinstance(self.raw, str):
            return self.raw
        return json.dumps(self.raw, default=str)


@dataclass(frozen=True)
class StatusUpdate:
    """One status notification for a submitted extrinsic"""
    status: ExtrinsicStatus
    extrinsic_hash: str
    block_hash: Optional[str] = None
    dispatch_error: Optional[DispatchError] = None


StatusCallback = Callable[[StatusUpdate], None]
ModuleErrorLookup = Callable[[int, int], Optional[ModuleError]]


def parse_status(raw: Any) -> Tuple[ExtrinsicStatus, Optional[str]]:
    """
    Parse a raw transaction status from the node

    Nodes send either a bare string ("ready", "dropped") or a single-key
    object ({"inBlock": "0x..."}); key case varies between node versions.

    Returns:
        Tuple of (status, block_hash or None)

    Raises:
        ValueError: unrecognised status payload
    """
    if isinstance(raw, str):
        key, payload = raw, None
    elif isinstance(raw, dict) and len(raw) == 1:
        key, payload = next(iter(raw.items()))
    else:
        raise ValueError(f"Unrecognised extrinsic status: {raw!r}")

    status = _STATUS_BY_KEY.get(str(key).lower())
    if status is None:
        raise ValueError(f"Unrecognised extrinsic status: {raw!r}")

    block_hash = payload if isinstance(payload, str) else None
    return status, block_hash


def _module_indices(module: Any) -> Tuple[int, int]:
    """Pallet and error index from the several shapes runtimes emit"""
    if isinstance(module, (tuple, list)):
        module_index, error = module[0], module[1]
    else:
        module_index, error = module['index'], module['error']

    # Newer runtimes encode the error as [u8; 4]; the index is the first byte
    if isinstance(error, str):
        error = int(error[2:4], 16) if error.startswith('0x') else int(error)
    elif isinstance(error, (bytes, list, tuple)):
        error = error[0]

    return int(module_index), int(error)


def primary_property(value: Any) -> Any:
    """Native token entry of a chain property; multi-token chains report a list"""
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def decode_dispatch_error(raw: Any, lookup: Optional[ModuleErrorLookup] = None) -> DispatchError:
    """
    Decode a dispatch error, resolving module errors through metadata

    Args:
        raw: dispatch_error attribute of System.ExtrinsicFailed
        lookup: Resolves (pallet_index, error_index) to a ModuleError

    Returns:
        DispatchError; module is None when it cannot be resolved
    """
    if not (isinstance(raw, dict) and 'Module' in raw) or lookup is None:
        return DispatchError(raw=raw)

    try:
        module_index, error_index = _module_indices(raw['Module'])
        module = lookup(module_index, error_index)
    except (KeyError, IndexError, TypeError, ValueError, LookupError) as e:
        logger.debug(f"Could not resolve module error {raw!r}: {e}")
        module = None

    return DispatchError(raw=raw, module=module)


class ChainConnector(ABC):
    """Capability the transaction manager needs from a chain client"""

    @abstractmethod
    async def connect(self, endpoint: str) -> ChainMetadata:
        """Open the connection; raises ChainConnectionError"""

    @abstractmethod
    async def get_account_balance(self, address: str) -> int:
        """Free balance in planck (0 for unknown accounts); raises BalanceQueryError"""

    @abstractmethod
    async def build_transfer(self, recipient: str, amount: int) -> Any:
        """Unsigned transfer call"""

    @abstractmethod
    async def estimate_fee(self, call: Any, keypair: Keypair) -> int:
        """Partial fee in planck; raises FeeEstimationError"""

    @abstractmethod
    async def submit_and_watch(self, call: Any, keypair: Keypair, on_status: StatusCallback) -> str:
        """
        Sign, submit and follow the extrinsic

        on_status is invoked on the event loop once per status change. Returns
        the extrinsic hash once the subscription ends; raises SubmissionError
        when the node refuses the extrinsic.
        """

    @abstractmethod
    async def close(self):
        """Release the connection; safe to call repeatedly"""


class SubstrateConnector(ChainConnector):
    """ChainConnector backed by py-substrate-interface"""

    def __init__(
        self,
        ss58_format: int = 42,
        transfer_call: str = 'transfer_keep_alive',
        type_registry: Optional[Dict[str, Any]] = None,
        default_decimals: int = 18,
        default_token: str = 'AVAIL'
    ):
        """
        Initialize connector

        Args:
            ss58_format: Network address format
            transfer_call: Balances call used for transfers
            type_registry: Extra type definitions (e.g. Avail's CheckAppId)
            default_decimals: Used when the node reports no tokenDecimals
            default_token: Used when the node reports no tokenSymbol
        """
        self.ss58_format = ss58_format
        self.transfer_call = transfer_call
        self.type_registry = type_registry
        self.default_decimals = default_decimals
        self.default_token = default_token

        self.substrate: Optional[SubstrateInterface] = None
        self._executor: Optional[ThreadPoolExecutor] = None

    async def _run(self, func: Callable, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(func, *args, **kwargs))

    def _require_connection(self) -> SubstrateInterface:
        if self.substrate is None or self._executor is None:
            raise ChainConnectionError("Not connected to a node")
        return self.substrate

    async def connect(self, endpoint: str) -> ChainMetadata:
        if self.substrate is not None:
            await self.close()

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='substrate')

        def _open() -> Tuple[SubstrateInterface, ChainMetadata]:
            substrate = SubstrateInterface(url=endpoint, ss58_format=self.ss58_format)
            try:
                if self.type_registry:
                    substrate.runtime_config.update_type_registry(self.type_registry)

                decimals = primary_property(substrate.token_decimals)
                symbol = primary_property(substrate.token_symbol)
                metadata = ChainMetadata(
                    decimals=int(decimals) if decimals is not None else self.default_decimals,
                    token_symbol=str(symbol) if symbol else self.default_token,
                    chain_name=str(substrate.chain),
                    node_version=str(substrate.version),
                )
            except Exception:
                substrate.close()
                raise
            return substrate, metadata

        try:
            self.substrate, metadata = await self._run(_open)
        except Exception as e:
            self._executor.shutdown(wait=False)
            self._executor = None
            raise ChainConnectionError(f"Failed to connect to {endpoint}: {e}") from e

        return metadata

    async def get_account_balance(self, address: str) -> int:
        substrate = self._require_connection()

        def _query() -> int:
            account = substrate.query('System', 'Account', [address])
            data = (account.value or {}).get('data') or {}
            return int(data.get('free', 0))

        try:
            return await self._run(_query)
        except Exception as e:
            raise BalanceQueryError(f"Failed to get balance for {address}: {e}") from e

    async def build_transfer(self, recipient: str, amount: int) -> Any:
        substrate = self._require_connection()

        try:
            return await self._run(
                substrate.compose_call,
                call_module='Balances',
                call_function=self.transfer_call,
                call_params={'dest': recipient, 'value': amount}
            )
        except Exception as e:
            raise TransferError(f"Failed to build Balances.{self.transfer_call} call: {e}") from e

    async def estimate_fee(self, call: Any, keypair: Keypair) -> int:
        substrate = self._require_connection()

        try:
            payment_info = await self._run(substrate.get_payment_info, call=call, keypair=keypair)
        except Exception as e:
            raise FeeEstimationError(f"Failed to estimate fee: {e}") from e

        if not payment_info or payment_info.get('partial_fee') is None:
            raise FeeEstimationError("Node returned no partial fee")
        return int(payment_info['partial_fee'])

    async def submit_and_watch(self, call: Any, keypair: Keypair, on_status: StatusCallback) -> str:
        substrate = self._require_connection()
        loop = asyncio.get_running_loop()

        def _submit() -> str:
            extrinsic = substrate.create_signed_extrinsic(call=call, keypair=keypair)
            extrinsic_hash = '0x{}'.format(extrinsic.extrinsic_hash.hex())

            def result_handler(message, update_nr, subscription_id):
                params = message.get('params') or {}
                if 'result' not in params:
                    return None

                try:
                    status, block_hash = parse_status(params['result'])
                except ValueError as e:
                    logger.debug(f"Skipping status update #{update_nr}: {e}")
                    return None

                dispatch_error = None
                if status is ExtrinsicStatus.FINALIZED:
                    dispatch_error = self._find_dispatch_error(substrate, extrinsic_hash, block_hash)
                    substrate.rpc_request('author_unwatchExtrinsic', [subscription_id])

                update = StatusUpdate(
                    status=status,
                    extrinsic_hash=extrinsic_hash,
                    block_hash=block_hash,
                    dispatch_error=dispatch_error,
                )
                loop.call_soon_threadsafe(on_status, update)

                return status.value if status.ends_subscription else None

            substrate.rpc_request(
                'author_submitAndWatchExtrinsic',
                [str(extrinsic.data)],
                result_handler=result_handler
            )
            return extrinsic_hash

        try:
            return await self._run(_submit)
        except TransferError:
            raise
        except Exception as e:
            raise SubmissionError(f"Transaction submission error: {e}") from e

    def _find_dispatch_error(
        self,
        substrate: SubstrateInterface,
        extrinsic_hash: str,
        block_hash: str
    ) -> Optional[DispatchError]:
        """Dispatch error of a finalized extrinsic, None if it succeeded"""
        try:
            receipt = ExtrinsicReceipt(
                substrate=substrate,
                extrinsic_hash=extrinsic_hash,
                block_hash=block_hash,
                finalized=True
            )
            events = receipt.triggered_events
        except Exception as e:
            raise SubmissionError(
                f"Finalized in {block_hash} but events could not be read: {e}",
                status=ExtrinsicStatus.FINALIZED.value
            ) from e

        for event in events:
            value = event.value
            if value.get('module_id') == 'System' and value.get('event_id') == 'ExtrinsicFailed':
                attributes = value.get('attributes')
                if isinstance(attributes, dict):
                    raw = attributes.get('dispatch_error')
                else:
                    raw = attributes[0] if attributes else None
                return decode_dispatch_error(
                    raw,
                    functools.partial(self._lookup_module_error, substrate)
                )

        return None

    @staticmethod
    def _lookup_module_error(
        substrate: SubstrateInterface,
        module_index: int,
        error_index: int
    ) -> Optional[ModuleError]:
        metadata = substrate.metadata
        section = None
        for pallet in metadata.pallets:
            if pallet.value['index'] == module_index:
                section = pallet.value['name']
                break
        if section is None:
            return None

        module_error = metadata.get_module_error(module_index=module_index, error_index=error_index)
        if module_error is None:
            return None
        return ModuleError(section=section, name=module_error.name, docs=tuple(module_error.docs or ()))

    async def close(self):
        substrate, self.substrate = self.substrate, None
        executor, self._executor = self._executor, None

        # Close directly: a watcher blocked in recv() holds the worker thread
        if substrate is not None:
            try:
                substrate.close()
            finally:
                if executor is not None:
                    executor.shutdown(wait=False)
        elif executor is not None:
            executor.shutdown(wait=False)
