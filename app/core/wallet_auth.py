"""
EVM Wallet Authentication Utilities

This module handles the cryptographic side of wallet sign-in.
Wallets prove control of an address by signing a server-issued challenge
with EIP-191 ``personal_sign``.

Authentication Flow:
1. Backend generates a random nonce -> generate_nonce()
2. Backend embeds it in the challenge text -> build_challenge_message()
3. Frontend signs the exact text with the wallet (personal_sign)
4. Frontend sends: wallet address, nonce, signature
5. Backend verifies: verify_signature()
   - Rebuilds the exact challenge message from the nonce
   - Recovers the signer address from the signature
   - Compares it case-insensitively with the claimed address

The signature recovery uses:
- secp256k1 ECDSA (Ethereum's signature algorithm)
- eth_account for EIP-191 message encoding and public key recovery
"""

import logging
import re
import secrets

from eth_account import Account
from eth_account.messages import encode_defunct

from app.core.config import settings
from app.core.errors import SignatureVerificationFailed

logger = logging.getLogger(__name__)

NONCE_NUM_BYTES = 32  # 32 bytes = 64 hex characters
SIGNATURE_NUM_BYTES = 65  # r (32) + s (32) + v (1)
ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


def generate_nonce(num_bytes: int = NONCE_NUM_BYTES) -> str:
    """
    Generate a cryptographically secure random nonce for wallet authentication.

    The nonce is a random hex string that the user must sign with their wallet
    to prove ownership. This prevents replay attacks.

    Args:
        num_bytes: Number of random bytes to generate (default: 32 = 64 hex chars)

    Returns:
        Hex-encoded random string (e.g., "a1b2c3d4...")
    """
    if num_bytes <= 0:
        num_bytes = NONCE_NUM_BYTES
    return secrets.token_hex(num_bytes)


def build_challenge_message(nonce: str, product: str | None = None) -> str:
    """Exact text the wallet has to sign. Any deviation breaks verification."""
    return f"Sign this message to authenticate with {product or settings.AUTH_PRODUCT_NAME}: {nonce}"


def is_valid_address(address: str) -> bool:
    return bool(address) and ADDRESS_PATTERN.match(address) is not None


def normalize_address(address: str) -> str:
    """Lowercase a 0x-prefixed 20-byte hex address, rejecting anything else."""
    address = (address or "").strip()
    if not is_valid_address(address):
        raise ValueError("Invalid wallet address")
    return address.lower()


def _decode_signature(signature: str) -> bytes:
    """
    Helper: Decode a hex signature (with or without 0x prefix) to 65 raw bytes.
    """
    value = (signature or "").strip()
    if value[:2].lower() == "0x":
        value = value[2:]
    try:
        raw = bytes.fromhex(value)
    except ValueError:
        raise SignatureVerificationFailed("Signature must be hex encoded")
    if len(raw) != SIGNATURE_NUM_BYTES:
        raise SignatureVerificationFailed(
            f"Signature must be {SIGNATURE_NUM_BYTES} bytes, got {len(raw)}"
        )
    return raw


def recover_signer(message: str, signature: str) -> str:
    """
    Recover the checksummed address that produced ``signature`` over ``message``.

    Raises:
        SignatureVerificationFailed: if the signature is malformed or cannot be
        recovered (bad recovery id, s out of range, ...)
    """
    signature_bytes = _decode_signature(signature)
    try:
        return Account.recover_message(encode_defunct(text=message), signature=signature_bytes)
    except Exception as exc:
        logger.info("Signature recovery rejected: %s", exc.__class__.__name__)
        raise SignatureVerificationFailed() from exc


def verify_signature(address: str, message: str, signature: str) -> bool:
    """
    Verify that ``signature`` over ``message`` was produced by ``address``.

    Example:
        message = build_challenge_message(nonce)
        if verify_signature("0xabc...", message, "0x5f1c..."):
            # issue a session for the address

    Returns:
        True if the recovered signer equals ``address`` (case-insensitive),
        False for a well-formed signature by another key or over another message.

    Raises:
        SignatureVerificationFailed: on malformed signature encoding
    """
    recovered = recover_signer(message, signature)
    return recovered.lower() == (address or "").strip().lower()
