"""
End-to-end wallet signature authentication.

``MetamaskStrategy.authenticate`` takes the claimed address, the signed
message and the signature, and returns an ``AuthenticationResult``: the
authenticated identity, a deferral when the request is not a wallet login at
all, or a failure with a generic reason.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from django.db import DatabaseError

from walletauth.auth import verify_signature
from walletauth.codec import normalize_address, normalize_message
from walletauth.exceptions import IdentityResolutionError, NonceConflict
from walletauth.identity import IdentityProvider, get_identity_provider, resolve_identity
from walletauth.policy import MessagePolicy
from walletauth.settings import WalletAuthConfig

logger = logging.getLogger(__name__)

INVALID_SIGNATURE = "invalid_signature"
INVALID = "invalid"


class Outcome(enum.Enum):
    NOT_APPLICABLE = "not_applicable"
    SIGNATURE_INVALID = "signature_invalid"
    MESSAGE_REJECTED = "message_rejected"
    RESOLUTION_FAILED = "resolution_failed"
    AUTHENTICATED = "authenticated"


# policy rejections are reported exactly like bad signatures
_REASONS = {
    Outcome.SIGNATURE_INVALID: INVALID_SIGNATURE,
    Outcome.MESSAGE_REJECTED: INVALID_SIGNATURE,
    Outcome.RESOLUTION_FAILED: INVALID,
}


@dataclass(frozen=True)
class AuthenticationRequest:
    claimed_address: Optional[str]
    raw_message: Optional[str]
    signature: Optional[str]

    @classmethod
    def from_params(cls, params: Mapping[str, Any], config: WalletAuthConfig):
        """Pick the three credentials out of request data by their configured names."""
        return cls(
            claimed_address=params.get(config.address_param),
            raw_message=params.get(config.message_param),
            signature=params.get(config.signature_param),
        )

    @property
    def is_complete(self) -> bool:
        return all(
            value is not None and str(value).strip()
            for value in (self.claimed_address, self.raw_message, self.signature)
        )


@dataclass(frozen=True)
class AuthenticationResult:
    """
    Outcome of one authentication attempt.

    ``detail`` is for logs only and must not be shown to the client.
    """

    outcome: Outcome
    identity: Any = None
    detail: str = ""

    @property
    def reason(self) -> Optional[str]:
        return _REASONS.get(self.outcome)

    @property
    def is_authenticated(self) -> bool:
        return self.outcome is Outcome.AUTHENTICATED

    @property
    def is_deferred(self) -> bool:
        return self.outcome is Outcome.NOT_APPLICABLE


class MetamaskStrategy:
    """
    Sequences codec, signature check, message policy, identity resolution and
    nonce rotation. Holds no state between calls.
    """

    def __init__(
        self,
        config: Optional[WalletAuthConfig] = None,
        provider: Optional[IdentityProvider] = None,
    ):
        self.config = config or WalletAuthConfig.from_settings()
        self.provider = provider or get_identity_provider(self.config)
        self.policy = MessagePolicy(self.config)

    def authenticate(self, request: AuthenticationRequest) -> AuthenticationResult:
        if not request.is_complete:
            return AuthenticationResult(Outcome.NOT_APPLICABLE)

        address = normalize_address(request.claimed_address)
        message = normalize_message(request.raw_message)

        verification = verify_signature(message, request.signature, address)
        if not verification.ok:
            logger.info(
                "Wallet login for %s failed signature check: %s",
                address,
                verification.error.value,
            )
            return AuthenticationResult(
                Outcome.SIGNATURE_INVALID, detail=verification.error.value
            )

        if not self.policy.accept(message):
            return AuthenticationResult(Outcome.MESSAGE_REJECTED, detail="message policy")

        try:
            identity, created = resolve_identity(address, message, self.provider)
        except IdentityResolutionError as e:
            logger.warning("Wallet login for %s failed: %s", address, e, exc_info=True)
            return AuthenticationResult(Outcome.RESOLUTION_FAILED, detail=str(e))

        # a brand new identity has never handed out a nonce to sign
        if not created and not self.policy.accept_for(message, identity):
            return AuthenticationResult(Outcome.MESSAGE_REJECTED, detail="nonce mismatch")

        try:
            self.provider.rotate_nonce(identity)
        except NonceConflict as e:
            logger.warning("Wallet login for %s lost nonce race: %s", address, e)
            return AuthenticationResult(Outcome.RESOLUTION_FAILED, detail=str(e))
        except DatabaseError as e:
            logger.warning("Could not rotate nonce for %s", address, exc_info=True)
            return AuthenticationResult(Outcome.RESOLUTION_FAILED, detail=str(e))

        logger.info("Wallet login succeeded for %s", address)
        return AuthenticationResult(Outcome.AUTHENTICATED, identity=identity)

    def authenticate_params(self, params: Mapping[str, Any]) -> AuthenticationResult:
        return self.authenticate(AuthenticationRequest.from_params(params, self.config))


def authenticate(
    claimed_address,
    raw_message,
    signature,
    config: Optional[WalletAuthConfig] = None,
    provider: Optional[IdentityProvider] = None,
) -> AuthenticationResult:
    """Run one authentication attempt with a freshly built strategy."""
    strategy = MetamaskStrategy(config=config, provider=provider)
    return strategy.authenticate(
        AuthenticationRequest(claimed_address, raw_message, signature)
    )
