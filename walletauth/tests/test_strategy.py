import time

from django.db import DatabaseError
from django.test import TestCase

from web3 import Web3

from walletauth.exceptions import NonceConflict
from walletauth.identity import ModelIdentityProvider
from walletauth.models import User
from walletauth.settings import WalletAuthConfig
from walletauth.strategy import (
    AuthenticationRequest,
    MetamaskStrategy,
    Outcome,
    authenticate,
)
from walletauth.tests.helpers import bare_address, make_message, sign


class TestAuthenticate(TestCase):

    def setUp(self):
        self.w3 = Web3()
        self.acc = self.w3.eth.account.create()
        self.other = self.w3.eth.account.create()
        self.config = WalletAuthConfig()
        self.strategy = MetamaskStrategy(config=self.config)
        self.message = make_message("abc123")
        self.signature = sign(self.message, self.acc)

    def attempt(self, address, message, signature, strategy=None):
        strategy = strategy or self.strategy
        return strategy.authenticate(AuthenticationRequest(address, message, signature))

    def test_authenticate_new_user(self):
        self.assertEqual(User.objects.filter(eth_address=bare_address(self.acc)).count(), 0)
        result = self.attempt(self.acc.address, self.message, self.signature)
        self.assertTrue(result.is_authenticated)
        self.assertIsNone(result.reason)
        self.assertEqual(result.identity.eth_address, bare_address(self.acc))
        self.assertEqual(User.objects.filter(eth_address=bare_address(self.acc)).count(), 1)
        self.assertTrue(User.objects.get(eth_address=bare_address(self.acc)).metamask_nonce)

    def test_authenticate_returning_user(self):
        first = self.attempt(self.acc.address, self.message, self.signature)
        message = make_message("def456")
        second = self.attempt(self.acc.address, message, sign(message, self.acc))
        self.assertTrue(second.is_authenticated)
        self.assertEqual(first.identity.pk, second.identity.pk)
        self.assertEqual(User.objects.filter(eth_address=bare_address(self.acc)).count(), 1)

    def test_nonce_rotates_on_every_success(self):
        user = User.objects.create_user_address(self.acc.address)
        seen = {user.metamask_nonce}
        for _ in range(3):
            result = self.attempt(self.acc.address, self.message, self.signature)
            self.assertTrue(result.is_authenticated)
            user.refresh_from_db()
            self.assertNotIn(user.metamask_nonce, seen)
            seen.add(user.metamask_nonce)

    def test_wrong_address_is_invalid_signature(self):
        result = self.attempt(self.other.address, self.message, self.signature)
        self.assertEqual(result.outcome, Outcome.SIGNATURE_INVALID)
        self.assertEqual(result.reason, "invalid_signature")
        self.assertEqual(User.objects.count(), 0)

    def test_address_case_and_prefix(self):
        for claimed in (self.acc.address.upper()[2:], "0x" + bare_address(self.acc)):
            result = self.attempt(claimed, self.message, self.signature)
            self.assertTrue(result.is_authenticated)
        self.assertEqual(User.objects.count(), 1)

    def test_hex_encoded_message(self):
        hex_message = "0x" + self.message.encode("utf-8").hex()
        result = self.attempt(self.acc.address, hex_message, self.signature)
        self.assertTrue(result.is_authenticated)
        plain = self.attempt(self.acc.address, self.message, self.signature)
        self.assertTrue(plain.is_authenticated)
        self.assertEqual(result.identity.pk, plain.identity.pk)

    def test_malformed_signature(self):
        for signature in ("0xdeadbeef", "garbage", "0x" + "00" * 65):
            result = self.attempt(self.acc.address, self.message, signature)
            self.assertEqual(result.outcome, Outcome.SIGNATURE_INVALID)
            self.assertEqual(result.reason, "invalid_signature")

    def test_missing_field_defers(self):
        cases = [
            (None, self.message, self.signature),
            (self.acc.address, None, self.signature),
            (self.acc.address, self.message, None),
            ("", self.message, self.signature),
            (self.acc.address, "  ", self.signature),
            (self.acc.address, self.message, ""),
        ]
        for address, message, signature in cases:
            result = self.attempt(address, message, signature)
            self.assertTrue(result.is_deferred)
            self.assertIsNone(result.reason)
        self.assertEqual(User.objects.count(), 0)

    def test_module_level_authenticate(self):
        result = authenticate(self.acc.address, self.message, self.signature, config=self.config)
        self.assertTrue(result.is_authenticated)

    def test_authenticate_params_uses_configured_names(self):
        config = WalletAuthConfig(
            address_param="address", message_param="message", signature_param="signature"
        )
        strategy = MetamaskStrategy(config=config)
        result = strategy.authenticate_params(
            {"address": self.acc.address, "message": self.message, "signature": self.signature}
        )
        self.assertTrue(result.is_authenticated)
        deferred = strategy.authenticate_params(
            {
                "metamask_address": self.acc.address,
                "metamask_message": self.message,
                "metamask_signature": self.signature,
            }
        )
        self.assertTrue(deferred.is_deferred)


class TestNetworkAllowList(TestCase):

    def setUp(self):
        self.acc = Web3().eth.account.create()
        self.strategy = MetamaskStrategy(config=WalletAuthConfig(allowed_networks=("mainnet",)))

    def test_allowed_network_succeeds(self):
        message = "App,1700000000,abc123,mainnet"
        result = self.strategy.authenticate(
            AuthenticationRequest(self.acc.address, message, sign(message, self.acc))
        )
        self.assertTrue(result.is_authenticated)

    def test_other_network_rejected_like_bad_signature(self):
        message = "App,1700000000,abc123,testnet"
        result = self.strategy.authenticate(
            AuthenticationRequest(self.acc.address, message, sign(message, self.acc))
        )
        self.assertEqual(result.outcome, Outcome.MESSAGE_REJECTED)
        self.assertEqual(result.reason, "invalid_signature")
        self.assertEqual(User.objects.count(), 0)

    def test_unstructured_message_rejected(self):
        message = "just sign in"
        result = self.strategy.authenticate(
            AuthenticationRequest(self.acc.address, message, sign(message, self.acc))
        )
        self.assertEqual(result.outcome, Outcome.MESSAGE_REJECTED)


class TestReplayPolicies(TestCase):

    def setUp(self):
        self.acc = Web3().eth.account.create()

    def test_nonce_match_required_for_known_identity(self):
        strategy = MetamaskStrategy(config=WalletAuthConfig(require_nonce_match=True))
        user = User.objects.create_user_address(self.acc.address)

        message = make_message(user.metamask_nonce)
        signature = sign(message, self.acc)
        result = strategy.authenticate(AuthenticationRequest(self.acc.address, message, signature))
        self.assertTrue(result.is_authenticated)

        # replaying the same signed message fails once the nonce has rotated
        replay = strategy.authenticate(AuthenticationRequest(self.acc.address, message, signature))
        self.assertEqual(replay.outcome, Outcome.MESSAGE_REJECTED)
        self.assertEqual(replay.reason, "invalid_signature")

        user.refresh_from_db()
        message = make_message(user.metamask_nonce)
        result = strategy.authenticate(
            AuthenticationRequest(self.acc.address, message, sign(message, self.acc))
        )
        self.assertTrue(result.is_authenticated)

    def test_nonce_match_skipped_for_new_identity(self):
        strategy = MetamaskStrategy(config=WalletAuthConfig(require_nonce_match=True))
        message = make_message("anything")
        result = strategy.authenticate(
            AuthenticationRequest(self.acc.address, message, sign(message, self.acc))
        )
        self.assertTrue(result.is_authenticated)

    def test_replay_accepted_without_nonce_policy(self):
        strategy = MetamaskStrategy(config=WalletAuthConfig())
        message = make_message("abc123")
        signature = sign(message, self.acc)
        for _ in range(2):
            result = strategy.authenticate(
                AuthenticationRequest(self.acc.address, message, signature)
            )
            self.assertTrue(result.is_authenticated)

    def test_stale_message_rejected(self):
        strategy = MetamaskStrategy(config=WalletAuthConfig(message_max_age=300))
        stale = make_message("abc123", timestamp=int(time.time()) - 3600)
        result = strategy.authenticate(
            AuthenticationRequest(self.acc.address, stale, sign(stale, self.acc))
        )
        self.assertEqual(result.outcome, Outcome.MESSAGE_REJECTED)

        fresh = make_message("abc123", timestamp=int(time.time() * 1000))
        result = strategy.authenticate(
            AuthenticationRequest(self.acc.address, fresh, sign(fresh, self.acc))
        )
        self.assertTrue(result.is_authenticated)


class RacingProvider(ModelIdentityProvider):
    """Another request creates the identity between our lookup and our insert."""

    def find_by_address(self, address):
        if not getattr(self, "raced", False):
            self.raced = True
            User.objects.create_user_address(address)
            return None
        return super().find_by_address(address)


class ConflictingProvider(ModelIdentityProvider):
    def rotate_nonce(self, identity):
        raise NonceConflict("rotated elsewhere")


class DecliningProvider(ModelIdentityProvider):
    def provision(self, address, message):
        return None


class BrokenRotationProvider(ModelIdentityProvider):
    def rotate_nonce(self, identity):
        raise DatabaseError("database is locked")


class RecordingProvider(ModelIdentityProvider):
    """Remembers the nonce each identity was first saved with."""

    def __init__(self, config):
        super().__init__(config)
        self.provisioned_nonces = {}

    def provision(self, address, message):
        identity = super().provision(address, message)
        self.provisioned_nonces[address] = (
            User.objects.filter(pk=identity.pk).values_list("metamask_nonce", flat=True).get()
        )
        return identity


class TestResolutionFailures(TestCase):

    def setUp(self):
        self.acc = Web3().eth.account.create()
        self.config = WalletAuthConfig()
        self.message = make_message("abc123")
        self.signature = sign(self.message, self.acc)

    def attempt(self, provider):
        strategy = MetamaskStrategy(config=self.config, provider=provider)
        return strategy.authenticate(
            AuthenticationRequest(self.acc.address, self.message, self.signature)
        )

    def test_concurrent_first_login_creates_one_identity(self):
        result = self.attempt(RacingProvider(self.config))
        self.assertTrue(result.is_authenticated)
        self.assertEqual(User.objects.filter(eth_address=bare_address(self.acc)).count(), 1)

    def test_declined_provisioning_is_invalid(self):
        result = self.attempt(DecliningProvider(self.config))
        self.assertEqual(result.outcome, Outcome.RESOLUTION_FAILED)
        self.assertEqual(result.reason, "invalid")

    def test_nonce_conflict_is_invalid(self):
        result = self.attempt(ConflictingProvider(self.config))
        self.assertEqual(result.outcome, Outcome.RESOLUTION_FAILED)
        self.assertEqual(result.reason, "invalid")

    def test_storage_error_during_rotation_is_invalid(self):
        result = self.attempt(BrokenRotationProvider(self.config))
        self.assertEqual(result.outcome, Outcome.RESOLUTION_FAILED)
        self.assertEqual(result.reason, "invalid")
        self.assertIsNone(result.identity)

    def test_first_login_rotates_provisioned_nonce(self):
        provider = RecordingProvider(self.config)
        result = self.attempt(provider)
        self.assertTrue(result.is_authenticated)
        provisioned = provider.provisioned_nonces[bare_address(self.acc)]
        self.assertTrue(provisioned)
        stored = User.objects.get(eth_address=bare_address(self.acc)).metamask_nonce
        self.assertTrue(stored)
        self.assertNotEqual(stored, provisioned)
        self.assertEqual(result.identity.metamask_nonce, stored)
