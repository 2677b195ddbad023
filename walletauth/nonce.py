"""
Per-identity nonce lifecycle.

A nonce is unset only transiently, before an identity is first saved. From
then on it is always a UUID string, replaced after every successful login.
"""

import uuid

from walletauth.exceptions import NonceConflict
from walletauth.settings import WalletAuthConfig


def generate_nonce() -> str:
    return str(uuid.uuid4())


def ensure_nonce(identity, config: WalletAuthConfig) -> str:
    """
    Give ``identity`` a nonce if it has none yet. Does not save.

    Returns:
        str: the identity's nonce after the call
    """
    current = getattr(identity, config.nonce_attribute, None)
    if current is None or not str(current).strip():
        current = generate_nonce()
        setattr(identity, config.nonce_attribute, current)
    return current


def rotate_nonce(identity, config: WalletAuthConfig) -> str:
    """
    Replace the identity's nonce and persist it.

    The write is a single conditional UPDATE keyed on the nonce value we read,
    so two concurrent logins cannot both rotate from the same value.

    Args:
        identity: a saved model instance
        config: supplies the name of the nonce field

    Returns:
        str: the new nonce

    Raises:
        NonceConflict: if the stored nonce changed under us
    """
    attr = config.nonce_attribute
    previous = getattr(identity, attr)
    new_nonce = generate_nonce()
    updated = (
        type(identity)
        ._default_manager.filter(pk=identity.pk, **{attr: previous})
        .update(**{attr: new_nonce})
    )
    if updated != 1:
        raise NonceConflict(f"nonce for identity {identity.pk} was rotated concurrently")
    setattr(identity, attr, new_nonce)
    return new_nonce
