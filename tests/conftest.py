"""
Pytest fixtures for avail_transfer. The chain is replaced by FakeConnector,
which records every call and replays a scripted status sequence.
"""

from __future__ import annotations

import asyncio

import pytest
from substrateinterface import Keypair

from avail_transfer.chain_connector import (
    ChainConnector,
    ChainMetadata,
    ExtrinsicStatus,
    StatusUpdate,
)

PLANCK_PER_AVAIL = 10 ** 18
TX_HASH = "0x" + "ab" * 32
IN_BLOCK_HASH = "0x" + "11" * 32
FINAL_HASH = "0x" + "22" * 32

# BIP39 reference vectors
VALID_12_WORDS = " ".join(["abandon"] * 11 + ["about"])
VALID_24_WORDS = " ".join(["abandon"] * 23 + ["art"])


def status(kind: ExtrinsicStatus, block_hash=None, dispatch_error=None) -> StatusUpdate:
    return StatusUpdate(
        status=kind,
        extrinsic_hash=TX_HASH,
        block_hash=block_hash,
        dispatch_error=dispatch_error,
    )


IN_BLOCK = status(ExtrinsicStatus.IN_BLOCK, IN_BLOCK_HASH)
FINALIZED = status(ExtrinsicStatus.FINALIZED, FINAL_HASH)


class FakeConnector(ChainConnector):
    """Scriptable in-memory chain"""

    def __init__(
        self,
        balance: int = 10 * PLANCK_PER_AVAIL,
        fee: int = 2 * 10 ** 14,
        statuses=(IN_BLOCK, FINALIZED),
        metadata: ChainMetadata | None = None,
        connect_error: Exception | None = None,
        balance_error: Exception | None = None,
        fee_error: Exception | None = None,
        submit_error: Exception | None = None,
        hang: bool = False,
    ):
        self.balance = balance
        self.fee = fee
        self.statuses = list(statuses)
        self.metadata = metadata or ChainMetadata(
            decimals=18,
            token_symbol="AVAIL",
            chain_name="Avail Turing Testnet",
            node_version="2.2.0",
        )
        self.connect_error = connect_error
        self.balance_error = balance_error
        self.fee_error = fee_error
        self.submit_error = submit_error
        self.hang = hang

        self.calls: list[tuple] = []
        self.close_count = 0

    def call_names(self) -> list[str]:
        return [name for name, *_ in self.calls]

    async def connect(self, endpoint):
        self.calls.append(("connect", endpoint))
        if self.connect_error:
            raise self.connect_error
        return self.metadata

    async def get_account_balance(self, address):
        self.calls.append(("balance", address))
        if self.balance_error:
            raise self.balance_error
        return self.balance

    async def build_transfer(self, recipient, amount):
        self.calls.append(("build", recipient, amount))
        return {"dest": recipient, "value": amount}

    async def estimate_fee(self, call, keypair):
        self.calls.append(("fee", call))
        if self.fee_error:
            raise self.fee_error
        return self.fee

    async def submit_and_watch(self, call, keypair, on_status):
        self.calls.append(("submit", call))
        if self.submit_error:
            raise self.submit_error
        for update in self.statuses:
            on_status(update)
            await asyncio.sleep(0)
        if self.hang:
            await asyncio.sleep(3600)
        return TX_HASH

    async def close(self):
        self.close_count += 1


@pytest.fixture
def mnemonic() -> str:
    return VALID_12_WORDS


@pytest.fixture
def recipient() -> str:
    return Keypair.create_from_uri("//Bob", ss58_format=42).ss58_address


@pytest.fixture
def polkadot_address() -> str:
    """Valid SS58 address, but for network format 0"""
    return Keypair.create_from_uri("//Bob", ss58_format=0).ss58_address
