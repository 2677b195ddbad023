"""
API views for wallet signature authentication.

These views only translate between HTTP and the authentication strategy.
Issuing a session or token after a successful login is left to the project.
"""

from django.http import JsonResponse
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny

from walletauth.codec import normalize_address
from walletauth.identity import get_identity_provider
from walletauth.serializers import WalletCredentialsSerializer, WalletIdentitySerializer
from walletauth.settings import WalletAuthConfig
from walletauth.strategy import MetamaskStrategy


@api_view(["POST"])
@permission_classes([AllowAny])
def authenticate_wallet(request):
    """
    Verify a wallet signature and return the signer's identity.

    Endpoint: POST /api/auth/metamask/

    Returns:
        JsonResponse: 200 with the address and the nonce to sign next time,
            400 if the wallet credentials are missing, 401 if they are rejected
    """
    config = WalletAuthConfig.from_settings()
    serializer = WalletCredentialsSerializer(data=request.data, config=config)
    serializer.is_valid(raise_exception=True)

    result = MetamaskStrategy(config=config).authenticate_params(serializer.validated_data)
    if result.is_deferred:
        return JsonResponse(
            {"status": 400, "message": "Missing wallet credentials"},
            status=status.HTTP_400_BAD_REQUEST,
        )
    if not result.is_authenticated:
        return JsonResponse(
            {"status": 401, "message": result.reason},
            status=status.HTTP_401_UNAUTHORIZED,
        )
    return JsonResponse(WalletIdentitySerializer(result.identity, config=config).data)


@api_view(["GET"])
@permission_classes([AllowAny])
def get_nonce(request, address):
    """
    Return the current nonce for a known wallet address.

    Endpoint: GET /api/auth/nonce/<address>/

    Clients embed this nonce in the next message they ask the wallet to sign.
    """
    config = WalletAuthConfig.from_settings()
    identity = get_identity_provider(config).find_by_address(normalize_address(address))
    if identity is None:
        return JsonResponse(
            {"status": 404, "message": "Unknown address"},
            status=status.HTTP_404_NOT_FOUND,
        )
    return JsonResponse(WalletIdentitySerializer(identity, config=config).data)
