"""
Serializers for the wallet authentication endpoints.
"""

from rest_framework import serializers

from walletauth.settings import WalletAuthConfig


class WalletCredentialsSerializer(serializers.Serializer):
    """
    The three wallet credentials, under the configured parameter names.

    Fields are optional here: a request missing any of them is not a wallet
    login, which the strategy reports as a deferral rather than a failure.
    """

    def __init__(self, *args, config: WalletAuthConfig = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.config = config or WalletAuthConfig.from_settings()
        for name in (
            self.config.address_param,
            self.config.message_param,
            self.config.signature_param,
        ):
            self.fields[name] = serializers.CharField(
                required=False, allow_blank=True, trim_whitespace=False
            )


class WalletIdentitySerializer(serializers.Serializer):
    """Public view of an authenticated wallet identity."""

    address = serializers.SerializerMethodField()
    nonce = serializers.SerializerMethodField()

    def __init__(self, *args, config: WalletAuthConfig = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.config = config or WalletAuthConfig.from_settings()

    def get_address(self, obj):
        return getattr(obj, self.config.eth_address_attribute)

    def get_nonce(self, obj):
        return getattr(obj, self.config.nonce_attribute)
