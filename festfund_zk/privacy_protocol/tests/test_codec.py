"""
Unit tests for commitment input validation and the digest codec.
"""

import pytest

from festfund_zk.privacy_protocol.codec import (
    DigestCodec,
    get_codec,
    is_hash_hex,
    parse_amount,
    validate_donation_input,
)
from festfund_zk.privacy_protocol.exceptions import ValidationError


# ============================================================================
# TEST: AMOUNT PARSING
# ============================================================================


class TestParseAmount:
    def test_accepts_int_and_digit_string(self):
        assert parse_amount(1000) == 1000
        assert parse_amount("1000") == 1000
        assert parse_amount(" 42 ") == 42

    @pytest.mark.parametrize("value", [True, 1.5, "1.5", "1e3", "abc", "", None, "-5", "١٢"])
    def test_rejects_non_integer_amounts(self, value):
        with pytest.raises(ValidationError):
            parse_amount(value)

    def test_rejects_negative(self):
        with pytest.raises(ValidationError, match="negative"):
            parse_amount(-1)

    def test_large_amounts_keep_precision(self):
        value = "123456789012345678901234567890"
        assert parse_amount(value) == int(value)


# ============================================================================
# TEST: DONATION INPUT
# ============================================================================


class TestValidateDonationInput:
    def test_valid_input(self):
        donation = validate_donation_input("100", "s1", " event-1 ", "10")
        assert donation.amount == 100
        assert donation.min_amount == 10
        assert donation.event_id == "event-1"

    def test_zero_amount_rejected(self):
        with pytest.raises(ValidationError, match="positive"):
            validate_donation_input(0, "s1", "E")

    def test_amount_below_minimum_rejected(self):
        with pytest.raises(ValidationError, match="minimum"):
            validate_donation_input(5, "s1", "E", 10)

    def test_empty_secret_rejected(self):
        with pytest.raises(ValidationError, match="secret"):
            validate_donation_input(5, "   ", "E")

    def test_empty_event_rejected(self):
        with pytest.raises(ValidationError, match="event_id"):
            validate_donation_input(5, "s1", "")

    def test_repr_hides_secret_and_amount(self):
        donation = validate_donation_input(777, "very-secret", "E")
        text = repr(donation)
        assert "very-secret" not in text
        assert "777" not in text


# ============================================================================
# TEST: DIGEST CODEC
# ============================================================================


class TestDigestCodec:
    def test_deterministic(self):
        codec = DigestCodec()
        assert codec.derive(100, "s1", "E") == codec.derive(100, "s1", "E")

    def test_output_format(self):
        pair = DigestCodec().derive(100, "s1", "E")
        assert is_hash_hex(pair.commitment_hash)
        assert is_hash_hex(pair.nullifier_hash)

    def test_nullifier_depends_only_on_secret_and_event(self):
        codec = DigestCodec()
        first = codec.derive(100, "s1", "E")
        second = codec.derive(999, "s1", "E", 5)
        assert first.nullifier_hash == second.nullifier_hash
        assert first.commitment_hash != second.commitment_hash

    def test_different_events_give_unlinkable_nullifiers(self):
        codec = DigestCodec()
        assert codec.derive(100, "s1", "E1").nullifier_hash != codec.derive(100, "s1", "E2").nullifier_hash

    def test_different_secrets_give_different_pairs(self):
        codec = DigestCodec()
        a = codec.derive(100, "s1", "E")
        b = codec.derive(100, "s2", "E")
        assert a.commitment_hash != b.commitment_hash
        assert a.nullifier_hash != b.nullifier_hash

    def test_min_amount_is_bound(self):
        codec = DigestCodec()
        assert codec.derive(100, "s1", "E", 0).commitment_hash != codec.derive(100, "s1", "E", 1).commitment_hash


def test_is_hash_hex():
    assert is_hash_hex("0x" + "ab" * 32)
    assert not is_hash_hex("ab" * 33)
    assert not is_hash_hex("0x" + "AB" * 32)
    assert not is_hash_hex("0x" + "ab" * 31)
    assert not is_hash_hex(None)


def test_get_codec():
    assert isinstance(get_codec("digest"), DigestCodec)
    with pytest.raises(ValueError):
        get_codec("pedersen")
    with pytest.raises(ValueError):
        get_codec("unknown")
