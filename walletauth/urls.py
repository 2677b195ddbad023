from django.urls import path
from .views import authenticate_wallet, get_nonce

urlpatterns = [
    path('metamask/', authenticate_wallet, name='metamask_authenticate'),
    path('nonce/<str:address>/', get_nonce, name='metamask_nonce'),
]
