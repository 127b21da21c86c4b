"""Tests for the ``AsIs`` literal escape hatch."""

from typing import Any

import pytest

from multidb.core.literal import ASIS_PREFIX, AsIs, is_asis_string


def test_asis_renders_fragment() -> None:
    literal = AsIs("NOW()")
    assert str(literal) == "NOW()"
    assert literal.sql_fragment == "NOW()"
    assert repr(literal) == "AsIs('NOW()')"


def test_asis_equality_and_hash() -> None:
    """Test literals compare by fragment."""
    assert AsIs("NOW()") == AsIs("NOW()")
    assert AsIs("NOW()") != AsIs("CURDATE()")
    assert AsIs("NOW()") != "NOW()"
    assert len({AsIs("NOW()"), AsIs("NOW()")}) == 1


def test_asis_is_immutable() -> None:
    literal = AsIs("NOW()")
    with pytest.raises(AttributeError):
        literal._sql_fragment = "DROP TABLE Users"  # type: ignore[misc]
    assert str(literal) == "NOW()"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("@asis NOW()", True),
        ("@ASIS NOW()", True),
        ("@AsIs NOW()", True),
        ("@asisNOW()", False),
        ("NOW()", False),
        (" @asis NOW()", False),
        (5, False),
        (None, False),
        (AsIs("NOW()"), False),
    ],
    ids=["lower", "upper", "mixed", "no_space", "plain", "leading_space", "int", "none", "asis_object"],
)
def test_is_asis_string(value: Any, expected: bool) -> None:
    """Test prefix detection is case-insensitive and requires the trailing space."""
    assert is_asis_string(value) is expected


def test_prefix_constant() -> None:
    assert ASIS_PREFIX == "@asis "
