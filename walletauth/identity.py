"""
Mapping verified wallet addresses to persistent identities.

Projects customise lookup, creation and nonce rotation by supplying their own
``IdentityProvider`` subclass through ``WALLETAUTH['IDENTITY_PROVIDER']``.
The default provider stores identities on the project's user model.
"""

import logging
import secrets
from abc import ABC, abstractmethod

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import DatabaseError, IntegrityError, transaction
from django.utils.module_loading import import_string

from walletauth.exceptions import IdentityResolutionError, ImproperlyConfiguredWalletAuth
from walletauth.nonce import ensure_nonce, rotate_nonce
from walletauth.settings import WalletAuthConfig

logger = logging.getLogger(__name__)

PLACEHOLDER_EMAIL_DOMAIN = "metamask.local"


class NoPlaceholders:
    """Leave new identities exactly as built from the address."""

    def apply(self, identity, address):
        pass


class DefaultPlaceholders:
    """
    Fill fields some user models require but wallet users do not have.

    A blank ``email`` becomes ``<address>@metamask.local`` and the password is
    set to a random value nobody knows.
    """

    def apply(self, identity, address):
        if hasattr(identity, "email") and not identity.email:
            identity.email = f"{address}@{PLACEHOLDER_EMAIL_DOMAIN}"
        if hasattr(identity, "set_password"):
            identity.set_password(secrets.token_hex(16))


class IdentityProvider(ABC):
    """Capability the authentication strategy uses to reach identity storage."""

    def __init__(self, config: WalletAuthConfig):
        self.config = config

    @abstractmethod
    def find_by_address(self, address: str):
        """Return the identity stored for the normalized ``address`` or None."""

    @abstractmethod
    def provision(self, address: str, message: str):
        """Create (or fetch, if created concurrently) the identity for ``address``."""

    @abstractmethod
    def rotate_nonce(self, identity) -> str:
        """Replace and persist the identity's nonce, returning the new value."""


class ModelIdentityProvider(IdentityProvider):
    """
    Stores identities as rows of a Django model, the user model by default.

    The address and nonce live in the fields named by the config. Creation of
    the same address by two requests at once is settled by the unique
    constraint: the loser of the race reads the winner's row.
    """

    def __init__(self, config: WalletAuthConfig, model=None, placeholders=None):
        super().__init__(config)
        self.model = model or get_user_model()
        if placeholders is None:
            try:
                placeholders = import_string(config.placeholder_strategy)()
            except ImportError as e:
                raise ImproperlyConfiguredWalletAuth(
                    f"Cannot import placeholder strategy {config.placeholder_strategy}"
                ) from e
        self.placeholders = placeholders

    def find_by_address(self, address):
        return self.model._default_manager.filter(
            **{self.config.eth_address_attribute: address}
        ).first()

    def build(self, address):
        identity = self.model(**{self.config.eth_address_attribute: address})
        ensure_nonce(identity, self.config)
        self.placeholders.apply(identity, address)
        return identity

    def provision(self, address, message):
        identity = self.build(address)
        identity.full_clean(exclude=["password"], validate_unique=False)
        try:
            with transaction.atomic():
                identity.save()
        except IntegrityError:
            existing = self.find_by_address(address)
            if existing is None:
                raise
            logger.info("Identity for %s was created concurrently, using it", address)
            return existing
        logger.info("Provisioned new identity for %s", address)
        return identity

    def rotate_nonce(self, identity):
        return rotate_nonce(identity, self.config)


def get_identity_provider(config: WalletAuthConfig) -> IdentityProvider:
    """Instantiate the provider class named in the config."""
    try:
        provider_class = import_string(config.identity_provider)
    except ImportError as e:
        raise ImproperlyConfiguredWalletAuth(
            f"Cannot import identity provider {config.identity_provider}"
        ) from e
    if not (isinstance(provider_class, type) and issubclass(provider_class, IdentityProvider)):
        raise ImproperlyConfiguredWalletAuth(
            f"{config.identity_provider} is not an IdentityProvider subclass"
        )
    return provider_class(config)


def resolve_identity(address: str, message: str, provider: IdentityProvider):
    """
    Find the identity for a verified address, creating it if it is new.

    Args:
        address: normalized wallet address
        message: the canonical signed message, passed on to provisioning
        provider: identity storage capability

    Returns:
        tuple: (identity, created) where created is True if the identity was
            provisioned by this call

    Raises:
        IdentityResolutionError: if storage fails, validation fails or the
            provider declines to create an identity
    """
    created = False
    try:
        identity = provider.find_by_address(address)
        if identity is None:
            identity = provider.provision(address, message)
            created = True
    except (DatabaseError, ValidationError) as e:
        raise IdentityResolutionError(f"could not resolve identity for {address}") from e
    if identity is None:
        raise IdentityResolutionError(f"provider declined to provision {address}")
    return identity, created
