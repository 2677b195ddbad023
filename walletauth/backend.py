"""
Django authentication backend for wallet signature logins.

This backend verifies a personal_sign signature over a message and returns
the user owning the signing address, creating that user on first login.
"""

import logging

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import BaseBackend

from walletauth.strategy import AuthenticationRequest, MetamaskStrategy

logger = logging.getLogger(__name__)


class MetamaskBackend(BaseBackend):
    """
    Authentication backend for wallet signatures.

    Credentials are passed to ``django.contrib.auth.authenticate`` under the
    configured parameter names (``metamask_address``, ``metamask_message``
    and ``metamask_signature`` by default). When none are passed they are
    read from the request's POST or GET data.
    """

    def get_strategy(self):
        return MetamaskStrategy()

    def authenticate(self, request, **credentials):
        """
        Authenticate a user via wallet address, signed message and signature.

        Args:
            request: The HTTP request, may be None
            **credentials: the three wallet credentials by parameter name

        Returns:
            User: The authenticated user, or None if authentication fails or
                the credentials are not wallet credentials
        """
        strategy = self.get_strategy()
        config = strategy.config
        names = (config.address_param, config.message_param, config.signature_param)
        if not any(name in credentials for name in names) and request is not None:
            credentials = request.POST if request.method == "POST" else request.GET
        result = strategy.authenticate(AuthenticationRequest.from_params(credentials, config))
        if not result.is_authenticated:
            if not result.is_deferred:
                logger.info("Wallet authentication denied: %s", result.reason)
            return None
        user = result.identity
        if not self.user_can_authenticate(user):
            return None
        return user

    def user_can_authenticate(self, user):
        return getattr(user, "is_active", True)

    def get_user(self, user_id):
        """
        Retrieve a user by user ID.

        Returns:
            User: The user with the given ID, or None if not found
        """
        User = get_user_model()
        try:
            return User._default_manager.get(pk=user_id)
        except User.DoesNotExist:
            return None
