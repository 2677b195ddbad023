"""
Content checks on the signed message.

The conventional message is ``title, timestamp, nonce, network`` with the
network as the last comma-separated field. The network allow-list is always
applied when configured. Nonce matching and timestamp freshness are optional
and only run when a project turns them on.
"""

import datetime
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

import pytz

from walletauth.settings import WalletAuthConfig

logger = logging.getLogger(__name__)

MIN_MESSAGE_FIELDS = 4

# timestamps above this are taken to be milliseconds (JavaScript Date.now())
_MILLISECOND_THRESHOLD = 10 ** 11


@dataclass(frozen=True)
class WalletMessage:
    title: str
    timestamp: str
    nonce: str
    network: str


def parse_wallet_message(message: str) -> Optional[WalletMessage]:
    """
    Split a signed message into its conventional fields.

    A title containing commas is kept whole: the last three fields are always
    timestamp, nonce and network.

    Returns:
        WalletMessage, or None when the message has fewer than four fields
    """
    parts = str(message).split(",")
    # a trailing comma does not open an empty network field
    while parts and parts[-1] == "":
        parts.pop()
    if len(parts) < MIN_MESSAGE_FIELDS:
        return None
    timestamp, nonce, network = (p.strip() for p in parts[-3:])
    return WalletMessage(
        title=",".join(parts[:-3]).strip(),
        timestamp=timestamp,
        nonce=nonce,
        network=network.lower(),
    )


def network_is_allowed(message: str, allowed_networks: Iterable[str]) -> bool:
    """
    Check the message's network field against the allow-list.

    An empty allow-list accepts every message, structured or not.
    """
    allowed = {n.strip().lower() for n in allowed_networks}
    if not allowed:
        return True
    parsed = parse_wallet_message(message)
    if parsed is None:
        return False
    return parsed.network in allowed


def nonce_matches(message: str, expected_nonce) -> bool:
    parsed = parse_wallet_message(message)
    if parsed is None or not expected_nonce:
        return False
    return parsed.nonce == str(expected_nonce)


def parse_timestamp(value: str) -> Optional[datetime.datetime]:
    """Read a unix timestamp in seconds or milliseconds as an aware UTC datetime."""
    try:
        stamp = float(value)
    except (TypeError, ValueError):
        return None
    if stamp != stamp or stamp < 0:
        return None
    if stamp >= _MILLISECOND_THRESHOLD:
        stamp = stamp / 1000
    try:
        return datetime.datetime.fromtimestamp(stamp, tz=pytz.UTC)
    except (OverflowError, OSError, ValueError):
        return None


def timestamp_is_fresh(
    message: str, max_age: float, now: Optional[datetime.datetime] = None
) -> bool:
    """
    Check that the embedded timestamp lies within ``max_age`` seconds of now.

    Timestamps in the future are held to the same window.
    """
    parsed = parse_wallet_message(message)
    if parsed is None:
        return False
    issued_at = parse_timestamp(parsed.timestamp)
    if issued_at is None:
        return False
    now = now or datetime.datetime.now(tz=pytz.UTC)
    return abs((now - issued_at).total_seconds()) <= max_age


class MessagePolicy:
    """
    The message checks a deployment has switched on.

    ``accept`` runs before identity resolution; ``accept_for`` runs once the
    identity is known and only does work when nonce matching is enabled.
    """

    def __init__(self, config: WalletAuthConfig):
        self.config = config

    def accept(self, message: str, now: Optional[datetime.datetime] = None) -> bool:
        if not network_is_allowed(message, self.config.normalized_networks):
            logger.info("Wallet message rejected: network not allowed")
            return False
        if self.config.message_max_age is not None and not timestamp_is_fresh(
            message, self.config.message_max_age, now=now
        ):
            logger.info("Wallet message rejected: timestamp outside validity window")
            return False
        return True

    def accept_for(self, message: str, identity) -> bool:
        if not self.config.require_nonce_match:
            return True
        stored = getattr(identity, self.config.nonce_attribute, None)
        if not nonce_matches(message, stored):
            logger.info("Wallet message rejected: nonce does not match stored nonce")
            return False
        return True
