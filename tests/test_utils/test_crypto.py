"""Tests for payload hashing helpers."""

from __future__ import annotations

import base64
import hashlib

import pytest

from username_attestor.utils.crypto import object_hash, sha256, source_string


class TestSourceString:
    def test_scalars(self) -> None:
        assert source_string("bob") == "s\x00bob"
        assert source_string(1450) == "n\x001450"
        assert source_string(True) == "b\x00true"
        assert source_string(2.0) == "n\x002"

    def test_object_keys_sorted(self) -> None:
        assert source_string({"b": 1, "a": "x"}) == "a\x00s\x00x\x00b\x00n\x001"
        assert source_string({"b": 1, "a": "x"}) == source_string({"a": "x", "b": 1})

    def test_array(self) -> None:
        assert source_string([{"username": "bob"}, "salt"]) == (
            "[\x00username\x00s\x00bob\x00s\x00salt\x00]"
        )

    @pytest.mark.parametrize("value", [None, [], {}, {"a": None}, object()])
    def test_rejects_unhashable(self, value) -> None:
        with pytest.raises(ValueError):
            source_string(value)


class TestObjectHash:
    def test_base64_sha256_of_source_string(self) -> None:
        expected = base64.b64encode(hashlib.sha256(b"a\x00n\x001").digest()).decode()
        assert object_hash({"a": 1}) == expected

    def test_length(self) -> None:
        assert len(object_hash(["x", "salt"])) == 44

    def test_sha256(self) -> None:
        assert sha256(b"") == hashlib.sha256(b"").digest()
