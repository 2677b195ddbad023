"""
Exceptions raised inside the wallet authentication core.

None of these reach an HTTP caller: the strategy converts them into a generic
authentication result.
"""

from django.core.exceptions import ImproperlyConfigured


class WalletAuthError(Exception):
    """Base class for wallet authentication errors."""


class ImproperlyConfiguredWalletAuth(WalletAuthError, ImproperlyConfigured):
    """The WALLETAUTH setting holds a value of the wrong type or shape."""


class IdentityResolutionError(WalletAuthError):
    """An identity could not be found or created for a verified address."""


class NonceConflict(WalletAuthError):
    """Another request rotated the nonce between our read and our write."""
