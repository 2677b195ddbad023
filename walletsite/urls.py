"""
URL configuration for the walletsite project.
"""

from django.urls import include, path

urlpatterns = [
    path("api/auth/", include("walletauth.urls")),
]
