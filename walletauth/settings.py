"""
Configuration for wallet signature authentication.

Projects configure the app through a single ``WALLETAUTH`` dict in their
Django settings. The dict is read into an immutable ``WalletAuthConfig`` which
is then handed to the strategy and the identity provider explicitly.
"""

from dataclasses import dataclass, field
from numbers import Real
from typing import Optional, Tuple

from django.conf import settings

from walletauth.exceptions import ImproperlyConfiguredWalletAuth

# Names of the identity-record fields holding the address and nonce
ETH_ADDRESS_ATTRIBUTE = "eth_address"
NONCE_ATTRIBUTE = "metamask_nonce"

# Names under which the three credentials arrive at the request boundary
ADDRESS_PARAM = "metamask_address"
MESSAGE_PARAM = "metamask_message"
SIGNATURE_PARAM = "metamask_signature"

IDENTITY_PROVIDER = "walletauth.identity.ModelIdentityProvider"
PLACEHOLDER_STRATEGY = "walletauth.identity.DefaultPlaceholders"


@dataclass(frozen=True)
class WalletAuthConfig:
    """
    Settings consumed by the authentication core.

    ``allowed_networks`` empty means any network is accepted.
    ``require_nonce_match`` and ``message_max_age`` (seconds) switch on the
    optional replay checks; both are off unless a project enables them.
    """

    allowed_networks: Tuple[str, ...] = ()
    eth_address_attribute: str = ETH_ADDRESS_ATTRIBUTE
    nonce_attribute: str = NONCE_ATTRIBUTE
    address_param: str = ADDRESS_PARAM
    message_param: str = MESSAGE_PARAM
    signature_param: str = SIGNATURE_PARAM
    require_nonce_match: bool = False
    message_max_age: Optional[float] = None
    identity_provider: str = IDENTITY_PROVIDER
    placeholder_strategy: str = PLACEHOLDER_STRATEGY
    normalized_networks: frozenset = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(
            self,
            "normalized_networks",
            frozenset(n.strip().lower() for n in self.allowed_networks),
        )

    @classmethod
    def from_dict(cls, options: dict) -> "WalletAuthConfig":
        """
        Build a config from a ``WALLETAUTH``-style dict.

        Args:
            options: mapping of upper-case option names to values

        Returns:
            WalletAuthConfig: the validated configuration

        Raises:
            ImproperlyConfiguredWalletAuth: on unknown keys or bad values
        """
        options = dict(options or {})
        unknown = set(options) - set(_OPTION_NAMES)
        if unknown:
            raise ImproperlyConfiguredWalletAuth(
                f"Unknown WALLETAUTH options: {', '.join(sorted(unknown))}"
            )
        kwargs = {_OPTION_NAMES[k]: v for k, v in options.items()}

        networks = kwargs.get("allowed_networks", ())
        if networks is None:
            networks = ()
        if isinstance(networks, str) or not all(isinstance(n, str) for n in networks):
            raise ImproperlyConfiguredWalletAuth(
                "WALLETAUTH['ALLOWED_NETWORKS'] must be a list of strings"
            )
        # keep the configured order, drop repeats
        kwargs["allowed_networks"] = tuple(dict.fromkeys(networks))

        max_age = kwargs.get("message_max_age")
        if max_age is not None and (
            isinstance(max_age, bool) or not isinstance(max_age, Real) or max_age <= 0
        ):
            raise ImproperlyConfiguredWalletAuth(
                "WALLETAUTH['MESSAGE_MAX_AGE'] must be a positive number of seconds"
            )

        for name in (
            "eth_address_attribute",
            "nonce_attribute",
            "address_param",
            "message_param",
            "signature_param",
            "identity_provider",
            "placeholder_strategy",
        ):
            if name in kwargs and (not isinstance(kwargs[name], str) or not kwargs[name]):
                raise ImproperlyConfiguredWalletAuth(
                    f"WALLETAUTH option for {name} must be a non-empty string"
                )
        return cls(**kwargs)

    @classmethod
    def from_settings(cls) -> "WalletAuthConfig":
        """Read the ``WALLETAUTH`` dict from the active Django settings."""
        return cls.from_dict(getattr(settings, "WALLETAUTH", {}))


_OPTION_NAMES = {
    "ALLOWED_NETWORKS": "allowed_networks",
    "ETH_ADDRESS_ATTRIBUTE": "eth_address_attribute",
    "NONCE_ATTRIBUTE": "nonce_attribute",
    "ADDRESS_PARAM": "address_param",
    "MESSAGE_PARAM": "message_param",
    "SIGNATURE_PARAM": "signature_param",
    "REQUIRE_NONCE_MATCH": "require_nonce_match",
    "MESSAGE_MAX_AGE": "message_max_age",
    "IDENTITY_PROVIDER": "identity_provider",
    "PLACEHOLDER_STRATEGY": "placeholder_strategy",
}
