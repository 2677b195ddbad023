from django.test import SimpleTestCase

from walletauth.codec import normalize_address, normalize_message, strip_hex_prefix


class TestNormalizeMessage(SimpleTestCase):

    def test_plain_text_is_verbatim(self):
        self.assertEqual(normalize_message("Sign in, please"), "Sign in, please")

    def test_hex_message_is_decoded(self):
        raw = "0x" + "WalletSite,1700000000,abc,mainnet".encode().hex()
        self.assertEqual(normalize_message(raw), "WalletSite,1700000000,abc,mainnet")

    def test_hex_message_with_utf8(self):
        text = "로그인 확인"
        self.assertEqual(normalize_message("0x" + text.encode("utf-8").hex()), text)

    def test_odd_length_hex_falls_back(self):
        self.assertEqual(normalize_message("0xabc"), "0xabc")

    def test_non_hex_falls_back(self):
        self.assertEqual(normalize_message("0xnothex"), "0xnothex")

    def test_invalid_utf8_falls_back(self):
        self.assertEqual(normalize_message("0xfffe"), "0xfffe")

    def test_bare_prefix_decodes_to_empty(self):
        self.assertEqual(normalize_message("0x"), "")


class TestNormalizeAddress(SimpleTestCase):

    def test_case_and_prefix(self):
        addr = "0xAbCdEf0123456789abcdef0123456789ABCDEF01"
        self.assertEqual(normalize_address(addr), "abcdef0123456789abcdef0123456789abcdef01")
        self.assertEqual(normalize_address(addr[2:].upper()), normalize_address(addr))

    def test_uppercase_prefix(self):
        self.assertEqual(normalize_address("0XABCD"), "abcd")

    def test_none(self):
        self.assertEqual(normalize_address(None), "")

    def test_strip_hex_prefix(self):
        self.assertEqual(strip_hex_prefix("0x12"), "12")
        self.assertEqual(strip_hex_prefix("12"), "12")
