"""
Keyring

Offline key handling: mnemonic validation, deterministic keypair
derivation and SS58 address checks. Nothing here touches the network.
"""

from typing import Tuple

from loguru import logger
from substrateinterface import Keypair, KeypairType
from substrateinterface.utils.ss58 import ss58_decode

from .errors import InvalidAddressError, InvalidSeedError


# BIP39 word counts
VALID_WORD_COUNTS = (12, 15, 18, 21, 24)

CRYPTO_TYPES = {
    'sr25519': KeypairType.SR25519,
    'ed25519': KeypairType.ED25519,
}


def validate_mnemonic(seed_phrase: str) -> bool:
    """True if the phrase has a BIP39 word count and checksum"""
    if not isinstance(seed_phrase, str):
        return False
    words = seed_phrase.split()
    if len(words) not in VALID_WORD_COUNTS:
        return False
    try:
        return bool(Keypair.validate_mnemonic(" ".join(words)))
    except ValueError:
        return False


def derive_keypair(
    seed_phrase: str,
    ss58_format: int = 42,
    crypto_type: str = 'sr25519'
) -> Tuple[Keypair, str]:
    """
    Derive the signing keypair for a mnemonic

    Args:
        seed_phrase: BIP39 mnemonic
        ss58_format: Network prefix for the derived address
        crypto_type: 'sr25519' or 'ed25519'

    Returns:
        Tuple of (keypair, ss58_address)

    Raises:
        InvalidSeedError: bad word count or checksum
    """
    # Never include the phrase itself in errors or logs
    if not validate_mnemonic(seed_phrase):
        raise InvalidSeedError("Invalid seed phrase")

    keypair = Keypair.create_from_mnemonic(
        " ".join(seed_phrase.split()),
        ss58_format=ss58_format,
        crypto_type=CRYPTO_TYPES[crypto_type]
    )
    logger.info(f"✅ Keypair created for address: {keypair.ss58_address}")
    return keypair, keypair.ss58_address


def check_address(address: str, ss58_format: int = 42) -> str:
    """
    Validate an SS58 address against the expected network format

    Returns:
        Hex public key the address encodes

    Raises:
        InvalidAddressError: wrong prefix, bad checksum or not SS58 at all
    """
    if not isinstance(address, str) or not address:
        raise InvalidAddressError("Address is empty")

    # ss58_decode passes raw hex keys through untouched
    if address.startswith('0x'):
        raise InvalidAddressError("Expected an SS58 address, got a hex public key")

    try:
        return ss58_decode(address, valid_ss58_format=ss58_format)
    except (ValueError, IndexError, TypeError) as e:
        raise InvalidAddressError(f"Invalid address format: {e}") from e


def is_valid_address(address: str, ss58_format: int = 42) -> bool:
    try:
        check_address(address, ss58_format)
    except InvalidAddressError:
        return False
    return True
