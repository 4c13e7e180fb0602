"""
Unit tests for form nonces.
"""
import pytest

from exceptions import InvalidNonceError
from security import NonceSigner


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock(1_700_000_000)


@pytest.fixture
def signer(clock):
    return NonceSigner(secret_key="secret", lifetime=60, clock=clock)


def test_token_verifies_for_its_action(signer):
    token = signer.create("my-plugin_license_nonce")

    assert signer.verify("my-plugin_license_nonce", token)
    assert not signer.verify("other_license_nonce", token)


def test_token_expires(signer, clock):
    token = signer.create("action")

    clock.now += 61

    assert not signer.verify("action", token)


def test_token_from_the_future_is_rejected(signer, clock):
    clock.now += 100
    token = signer.create("action")
    clock.now -= 100

    assert not signer.verify("action", token)


def test_other_secret_rejects(signer, clock):
    token = NonceSigner(secret_key="other", lifetime=60, clock=clock).create("action")
    assert not signer.verify("action", token)


@pytest.mark.parametrize("token", ["", "garbage", "abc.def", "1700000000."])
def test_malformed_tokens(signer, token):
    assert not signer.verify("action", token)


def test_check_raises(signer):
    with pytest.raises(InvalidNonceError):
        signer.check("action", "nope")
