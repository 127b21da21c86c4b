"""Tests for connector configuration."""

from typing import Any

import pytest

from multidb.config import CONNECTOR_REQUIRED_FIELDS, MultiDbConfig
from multidb.exceptions import ImproperConfigurationError

VALID_CONNECTOR = {"dsn": "sqlite::memory:", "user": "", "password": ""}


def test_valid_config() -> None:
    config = MultiDbConfig({"Primary": VALID_CONNECTOR, "Audit": VALID_CONNECTOR}, timezone="Europe/Berlin")

    assert sorted(config.connectors) == ["Audit", "Primary"]
    assert config.timezone == "Europe/Berlin"
    assert config.get_connector("Primary") == VALID_CONNECTOR
    assert repr(config) == "MultiDbConfig(connectors=['Audit', 'Primary'], timezone='Europe/Berlin')"


def test_default_timezone() -> None:
    assert MultiDbConfig({"Primary": VALID_CONNECTOR}).timezone == "UTC"


def test_connectors_are_copied() -> None:
    connector = dict(VALID_CONNECTOR)
    config = MultiDbConfig({"Primary": connector})
    connector["dsn"] = "mysql:host=elsewhere"

    assert config.get_connector("Primary")["dsn"] == "sqlite::memory:"


@pytest.mark.parametrize(
    "connectors",
    [
        {},
        None,
        ["Primary"],
        {"Primary": "sqlite::memory:"},
        {"Primary": {"dsn": "sqlite::memory:", "user": ""}},
        {"Primary": {"user": "", "password": ""}},
    ],
    ids=["empty", "none", "list", "not_a_mapping", "no_password", "no_dsn"],
)
def test_invalid_connectors(connectors: Any) -> None:
    """Test incomplete configuration names the required options."""
    with pytest.raises(ImproperConfigurationError) as exc_info:
        MultiDbConfig(connectors)

    for field in CONNECTOR_REQUIRED_FIELDS:
        assert field in str(exc_info.value)


def test_unknown_connector() -> None:
    config = MultiDbConfig({"Primary": VALID_CONNECTOR})

    with pytest.raises(ImproperConfigurationError, match="Reporting"):
        config.get_connector("Reporting")


def test_from_mapping() -> None:
    config = MultiDbConfig.from_mapping({"connectors": {"Primary": VALID_CONNECTOR}, "timezone": "Asia/Tokyo"})

    assert config.timezone == "Asia/Tokyo"
    assert list(config.connectors) == ["Primary"]


def test_from_mapping_without_timezone() -> None:
    assert MultiDbConfig.from_mapping({"connectors": {"Primary": VALID_CONNECTOR}}).timezone == "UTC"


@pytest.mark.parametrize("data", [{}, {"timezone": "UTC"}, "connectors"], ids=["empty", "no_connectors", "string"])
def test_from_mapping_invalid(data: Any) -> None:
    with pytest.raises(ImproperConfigurationError):
        MultiDbConfig.from_mapping(data)
