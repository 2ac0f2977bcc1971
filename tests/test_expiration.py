# tests/test_expiration.py
"""Tests for expiration conditions."""

import pytest

from nftreg.expiration import BlockInfo, Duration, Expiration


def block(height: int = 0, time: int = 0) -> BlockInfo:
    return BlockInfo(height=height, time=time, chain_id="test")


class TestExpiration:
    """Test Expiration evaluation."""

    def test_at_height_boundary(self):
        """Expired once the current height reaches the bound."""
        expires = Expiration.at_height(100)
        assert not expires.is_expired(block(height=99))
        assert expires.is_expired(block(height=100))
        assert expires.is_expired(block(height=101))

    def test_at_time_boundary(self):
        expires = Expiration.at_time(1000)
        assert not expires.is_expired(block(time=999))
        assert expires.is_expired(block(time=1000))

    def test_at_height_ignores_time(self):
        expires = Expiration.at_height(100)
        assert not expires.is_expired(block(height=5, time=10**12))

    def test_never_expires(self):
        expires = Expiration.never()
        assert not expires.is_expired(block(height=10**9, time=10**12))
        assert Expiration.default() == expires

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            Expiration.at_height(-1)
        with pytest.raises(ValueError):
            Expiration("at_block", 5)
        with pytest.raises(ValueError):
            Expiration("never", 3)

    def test_serialization(self):
        """Test to_dict and from_dict."""
        for expires in (Expiration.at_height(7), Expiration.at_time(9), Expiration.never()):
            assert Expiration.from_dict(expires.to_dict()) == expires
        assert Expiration.never().to_dict() == {"never": {}}
        assert Expiration.at_height(7).to_dict() == {"at_height": 7}

    def test_from_dict_rejects_bad_shape(self):
        with pytest.raises(ValueError):
            Expiration.from_dict({"at_height": 1, "at_time": 2})
        with pytest.raises(ValueError):
            Expiration.from_dict({"at_height": "soon"})

    def test_ordering_same_kind(self):
        assert Expiration.at_height(1) < Expiration.at_height(2)
        assert Expiration.at_time(5) >= Expiration.at_time(5)
        assert not Expiration.never() < Expiration.never()

    def test_ordering_mixed_kinds_fails(self):
        with pytest.raises(ValueError):
            Expiration.at_height(1) < Expiration.at_time(2)


class TestDuration:
    """Test Duration.after."""

    def test_height_duration(self):
        assert Duration.height(10).after(block(height=90)) == Expiration.at_height(100)

    def test_time_duration(self):
        assert Duration.time(60).after(block(time=1000)) == Expiration.at_time(1060)

    def test_invalid_duration(self):
        with pytest.raises(ValueError):
            Duration("blocks", 1)

    def test_bool_duration_rejected(self):
        with pytest.raises(ValueError):
            Duration.height(True)
        with pytest.raises(ValueError):
            Duration.time(False)
