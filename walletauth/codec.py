"""
Normalization of signed payloads and wallet addresses.

Wallets following the personal_sign convention may hand the dapp a
hex-encoded payload. Verification has to run over the bytes the wallet
actually signed, so ``0x``-prefixed messages are decoded back into text.
"""

import binascii

HEX_PREFIX = "0x"


def strip_hex_prefix(value: str) -> str:
    if value.startswith(HEX_PREFIX):
        return value[len(HEX_PREFIX):]
    return value


def normalize_address(address) -> str:
    """
    Canonical form used for every address comparison and lookup.

    Args:
        address: wallet address, with or without ``0x``, any letter case

    Returns:
        str: lower-case hex string without the ``0x`` prefix
    """
    return strip_hex_prefix(str(address or "").strip().lower())


def normalize_message(raw_message: str) -> str:
    """
    Return the text the wallet signed.

    A message starting with ``0x`` is treated as a hex encoding of a UTF-8
    string and decoded. If it does not decode cleanly the raw message is used
    unmodified. Any other message is returned verbatim. Never raises.
    """
    raw_message = str(raw_message)
    if not raw_message.startswith(HEX_PREFIX):
        return raw_message
    try:
        return binascii.unhexlify(raw_message[len(HEX_PREFIX):]).decode("utf-8")
    except (binascii.Error, ValueError):
        return raw_message
