"""Tests for signing.py: determinism, tamper sensitivity, secret rotation."""

import hashlib
import hmac

import pytest

from cubeclient.exceptions import SetupError
from cubeclient.signing import Signer

CANONICAL = b"POST\n/api/push/settings\naccessToken=t&isDebug=true&timestamp=1\n{}"


class TestSign:
    def test_deterministic(self):
        signer = Signer(("k1",))
        assert signer.sign(CANONICAL) == signer.sign(CANONICAL)

    def test_matches_hmac_sha256_of_first_secret(self):
        signer = Signer(("new", "old"))
        expected = hmac.new(b"new", CANONICAL, hashlib.sha256).hexdigest()
        assert signer.sign(CANONICAL) == expected

    def test_every_byte_change_alters_signature(self):
        signer = Signer(("k1",))
        original = signer.sign(CANONICAL)
        for i in range(len(CANONICAL)):
            tampered = bytearray(CANONICAL)
            tampered[i] ^= 0x01
            assert signer.sign(bytes(tampered)) != original

    def test_different_keys_differ(self):
        assert Signer(("a",)).sign(CANONICAL) != Signer(("b",)).sign(CANONICAL)


class TestVerify:
    def test_accepts_current_secret(self):
        signer = Signer(("new", "old"))
        assert signer.verify(CANONICAL, signer.sign(CANONICAL))

    def test_accepts_rotated_out_secret(self):
        legacy = Signer(("old",)).sign(CANONICAL)
        assert Signer(("new", "old")).verify(CANONICAL, legacy)

    def test_rejects_unknown_secret(self):
        foreign = Signer(("other",)).sign(CANONICAL)
        assert not Signer(("new", "old")).verify(CANONICAL, foreign)

    def test_rejects_tampered_content(self):
        signer = Signer(("k",))
        signature = signer.sign(CANONICAL)
        assert not signer.verify(CANONICAL + b" ", signature)

    @pytest.mark.parametrize("signature", [None, "", 123])
    def test_rejects_missing_signature(self, signature):
        assert not Signer(("k",)).verify(CANONICAL, signature)


class TestConfiguration:
    def test_empty_set_fails_at_construction(self):
        with pytest.raises(SetupError):
            Signer(())

    def test_secrets_are_immutable_tuple(self):
        signer = Signer(["a", "b"])
        assert signer.secrets == ("a", "b")
        assert isinstance(signer.secrets, tuple)

    def test_defaults_to_configured_secrets(self):
        # conftest configures "secret-current,secret-previous"
        assert Signer(None).secrets == ("secret-current", "secret-previous")
