"""
Database models for wallet signature authentication.

The User model can sign in either with a wallet signature or with a
username and password. Wallet users are keyed by their normalized address and
carry a single-use nonce that is replaced after every wallet login.
"""

from django.contrib.auth.hashers import make_password
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager
from django.core.validators import RegexValidator
from django.db import models

from walletauth.codec import normalize_address
from walletauth.nonce import generate_nonce


validate_eth_address = RegexValidator(
    regex=r"^[a-f0-9]{40}$",
    message="Enter a lower-case 40 character hex address without the 0x prefix.",
)


class UserManager(BaseUserManager):
    """
    Manager for the custom User model.

    Provides creation helpers for wallet users and for traditional
    username/email/password users.
    """

    def create_user_address(self, address, **extra_fields):
        """
        Create and save a User for the given wallet address.

        Args:
            address: The wallet address, in any case, with or without 0x

        Returns:
            User: The created user instance

        Raises:
            ValueError: If no address is provided
        """
        address = normalize_address(address)
        if not address:
            raise ValueError("Users must have an eth address")

        user = self.model(eth_address=address, **extra_fields)
        user.save(using=self._db)
        return user

    def create_user_username_email_password(self, username, email, password):
        """
        Create and save a User with traditional credentials.

        Raises:
            ValueError: If any of the required fields are missing
        """
        for field in [username, password, email]:
            if not field:
                raise ValueError("Users must have a username, password, and email")

        email = self.normalize_email(email)
        user = self.model(email=email, username=username)
        user.password = make_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, username, password, email=None):
        u = self.create_user_username_email_password(
            username, email or f"{username}@localhost", password
        )
        u.is_admin = True
        u.is_staff = True
        u.save(using=self._db)
        return u


class User(AbstractBaseUser):
    """
    User that authenticates with a wallet signature or a password.

    ``eth_address`` is immutable once set. ``metamask_nonce`` is assigned on
    first save and never left blank afterwards.
    """

    eth_address = models.CharField(
        verbose_name="Wallet Address",
        max_length=40,
        unique=True,
        null=True,
        blank=True,
        validators=[validate_eth_address],
    )
    metamask_nonce = models.CharField(max_length=36, blank=False)

    username = models.CharField(max_length=150, blank=True, null=True, unique=True)
    email = models.CharField(max_length=150, blank=True, null=True, unique=True)
    is_admin = models.BooleanField(default=False)
    is_staff = models.BooleanField(default=False)
    objects = UserManager()

    USERNAME_FIELD = "username"
    REQUIRED_FIELDS = []

    def save(self, *args, **kwargs):
        if not self.metamask_nonce:
            self.metamask_nonce = generate_nonce()
        if self.pk is not None and self.eth_address is not None:
            stored = (
                type(self)._default_manager.filter(pk=self.pk)
                .values_list("eth_address", flat=True)
                .first()
            )
            if stored and stored != self.eth_address:
                raise ValueError("eth_address cannot be changed once set")
        super().save(*args, **kwargs)

    @property
    def is_metamask_user(self):
        """True if this user has a wallet address, i.e. signs in with a wallet."""
        return bool(self.eth_address)

    def has_perm(self, perm, obj=None):
        return self.is_admin

    def has_module_perms(self, app_label):
        return self.is_admin

    def __str__(self):
        return self.username or self.eth_address or "User"
