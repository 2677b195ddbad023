"""
Signature recovery for personal_sign (EIP-191) messages.

The signer's address is recovered from the signature and compared against the
address the client claims. Every recovery fault is turned into a ``Recovery``
value carrying a ``VerificationError``; nothing in here raises to the caller.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from eth_account.messages import encode_defunct
from eth_keys.exceptions import BadSignature
from eth_keys.exceptions import ValidationError as KeyValidationError
from eth_utils.exceptions import ValidationError as UtilsValidationError
from hexbytes import HexBytes
from web3 import Web3

from walletauth.codec import normalize_address

logger = logging.getLogger(__name__)

w3 = Web3()


class VerificationError(enum.Enum):
    MISSING_SIGNATURE = "missing_signature"
    MALFORMED_SIGNATURE = "malformed_signature"
    BAD_SIGNATURE = "bad_signature"
    RECOVERY_FAILED = "recovery_failed"
    ADDRESS_MISMATCH = "address_mismatch"


@dataclass(frozen=True)
class Recovery:
    """Result of recovering a signer: either an address or an error."""

    address: Optional[str] = None
    error: Optional[VerificationError] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class Verification:
    """Result of matching a recovered signer against a claimed address."""

    ok: bool
    recovered_address: Optional[str] = None
    error: Optional[VerificationError] = None
    detail: str = ""


def _signature_bytes(signature) -> HexBytes:
    if isinstance(signature, (bytes, bytearray)):
        return HexBytes(signature)
    return HexBytes(str(signature).strip())


def recover_signer(message: str, signature) -> Recovery:
    """
    Recover the address that produced ``signature`` over ``message``.

    The message is wrapped with the personal-message header
    (``"\\x19Ethereum Signed Message:\\n" + len(message)``) and hashed with
    Keccak-256 before public-key recovery.

    Args:
        message: the canonical (already decoded) message text
        signature: 65-byte r||s||v signature as hex string or bytes

    Returns:
        Recovery: normalized signer address, or the classified failure
    """
    if signature is None or (isinstance(signature, str) and not signature.strip()):
        return Recovery(error=VerificationError.MISSING_SIGNATURE)
    try:
        signature = _signature_bytes(signature)
    except (ValueError, TypeError) as e:
        return Recovery(error=VerificationError.MALFORMED_SIGNATURE, detail=str(e))
    if len(signature) != 65:
        return Recovery(
            error=VerificationError.MALFORMED_SIGNATURE,
            detail=f"expected 65 signature bytes, got {len(signature)}",
        )
    try:
        signable = encode_defunct(text=message)
        recovered = w3.eth.account.recover_message(signable, signature=signature)
    except (BadSignature, KeyValidationError, UtilsValidationError) as e:
        return Recovery(error=VerificationError.BAD_SIGNATURE, detail=str(e))
    except (ValueError, TypeError) as e:
        return Recovery(error=VerificationError.RECOVERY_FAILED, detail=str(e))
    return Recovery(address=normalize_address(recovered))


def verify_signature(message: str, signature, claimed_address: str) -> Verification:
    """Recover the signer and compare it, case-insensitively, to the claim."""
    recovery = recover_signer(message, signature)
    if not recovery.ok:
        return Verification(ok=False, error=recovery.error, detail=recovery.detail)
    if recovery.address != normalize_address(claimed_address):
        return Verification(
            ok=False,
            recovered_address=recovery.address,
            error=VerificationError.ADDRESS_MISMATCH,
        )
    return Verification(ok=True, recovered_address=recovery.address)


def recover_and_match(message: str, signature, claimed_address: str) -> bool:
    """
    Return True if ``signature`` over ``message`` was made by ``claimed_address``.

    Failures are logged with their classification and reported as False.
    """
    result = verify_signature(message, signature, claimed_address)
    if not result.ok:
        logger.info(
            "Wallet signature rejected for %s: %s",
            normalize_address(claimed_address),
            result.error.value,
        )
    return result.ok
