import time

from eth_account.messages import encode_defunct
from web3 import Web3

w3 = Web3()


def make_message(nonce, network="mainnet", title="WalletSite Login", timestamp=None):
    if timestamp is None:
        timestamp = int(time.time())
    return f"{title},{timestamp},{nonce},{network}"


def sign(message, account):
    encoded_message = encode_defunct(text=message)
    signed_message = w3.eth.account.sign_message(encoded_message, w3.to_hex(account.key))
    return w3.to_hex(signed_message.signature)


def bare_address(account):
    return account.address[2:].lower()
