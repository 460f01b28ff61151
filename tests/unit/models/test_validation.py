"""Tests for hostprobe.models._validation shared helpers."""

import pytest

from hostprobe.models._validation import (
    validate_height,
    validate_instance,
    validate_str_no_null,
)


class TestValidateInstance:
    def test_accepts_instance(self) -> None:
        validate_instance(3, int, "height")

    def test_article(self) -> None:
        with pytest.raises(TypeError, match="index must be an int, got str"):
            validate_instance("3", int, "index")
        with pytest.raises(TypeError, match="protocol must be a str, got NoneType"):
            validate_instance(None, str, "protocol")


class TestValidateHeight:
    @pytest.mark.parametrize("value", [0, 1, 530_000])
    def test_accepts(self, value: int) -> None:
        validate_height(value, "height")

    @pytest.mark.parametrize("value", [True, 1.0, "5"])
    def test_rejects_non_int(self, value: object) -> None:
        with pytest.raises(TypeError):
            validate_height(value, "height")

    def test_rejects_negative(self) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            validate_height(-1, "height")


class TestValidateStrNoNull:
    def test_accepts(self) -> None:
        validate_str_no_null("host.example:9984", "address")

    def test_rejects_non_str(self) -> None:
        with pytest.raises(TypeError, match="address must be a str"):
            validate_str_no_null(b"x", "address")

    def test_rejects_null_bytes(self) -> None:
        with pytest.raises(ValueError, match="null bytes"):
            validate_str_no_null("a\x00b", "address")
