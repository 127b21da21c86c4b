"""Connector configuration.

Example:
    .. code-block:: python

        config = MultiDbConfig(
            connectors={
                "Primary": {"dsn": "mysql:host=db;dbname=Blog", "user": "blog", "password": "secret"},
                "Audit": {"dsn": "sqlite:///tmp/audit.db", "user": "", "password": ""},
            },
            timezone="UTC",
        )
"""

from collections.abc import Mapping
from typing import Any, Final, Optional, TypedDict

from multidb.exceptions import ImproperConfigurationError
from multidb.utils.logging import get_logger

__all__ = ("CONNECTOR_REQUIRED_FIELDS", "ConnectorConfig", "MultiDbConfig")

logger = get_logger("config")

CONNECTOR_REQUIRED_FIELDS: Final[tuple[str, ...]] = ("dsn", "user", "password")
DEFAULT_TIMEZONE: Final[str] = "UTC"


class ConnectorConfig(TypedDict):
    """Connection settings for one named connector."""

    dsn: str
    user: Optional[str]
    password: Optional[str]


class MultiDbConfig:
    """Validated configuration for every connector a test run may use.

    Args:
        connectors: Mapping of connector name to :class:`ConnectorConfig`.
        timezone: Session time zone applied once on first connect to each connector.

    Raises:
        ImproperConfigurationError: If there are no connectors, or a connector lacks ``dsn``, ``user`` or
            ``password``.
    """

    __slots__ = ("connectors", "timezone")

    def __init__(self, connectors: "Mapping[str, ConnectorConfig]", timezone: str = DEFAULT_TIMEZONE) -> None:
        self.connectors: dict[str, ConnectorConfig] = self._validate(connectors)
        self.timezone = timezone
        logger.debug("Configured connectors %s with time zone %s", sorted(self.connectors), timezone)

    @staticmethod
    def _validate(connectors: Any) -> "dict[str, ConnectorConfig]":
        required_message = (
            f"Options: {', '.join(CONNECTOR_REQUIRED_FIELDS)} are required for every connector. "
            "Please, update the configuration and set all the required fields"
        )
        if not isinstance(connectors, Mapping) or not connectors:
            msg = f"No connectors configured. {required_message}"
            raise ImproperConfigurationError(msg)

        validated: dict[str, ConnectorConfig] = {}
        for name, connector_config in connectors.items():
            if not isinstance(connector_config, Mapping):
                msg = f"Connector {name!r} must be a mapping. {required_message}"
                raise ImproperConfigurationError(msg)
            missing = [field for field in CONNECTOR_REQUIRED_FIELDS if field not in connector_config]
            if missing:
                msg = f"Connector {name!r} is missing {', '.join(missing)}. {required_message}"
                raise ImproperConfigurationError(msg)
            validated[str(name)] = dict(connector_config)  # type: ignore[assignment]
        return validated

    @classmethod
    def from_mapping(cls, data: "Mapping[str, Any]") -> "MultiDbConfig":
        """Build a config from plain data, e.g. a parsed JSON or YAML document.

        Expects ``{"connectors": {...}, "timezone": "UTC"}``; ``timezone`` is optional.
        """
        if not isinstance(data, Mapping):
            msg = "MultiDb configuration must be a mapping"
            raise ImproperConfigurationError(msg)
        return cls(connectors=data.get("connectors"), timezone=data.get("timezone") or DEFAULT_TIMEZONE)  # type: ignore[arg-type]

    def get_connector(self, name: str) -> ConnectorConfig:
        """Return the settings for ``name``.

        Raises:
            ImproperConfigurationError: If ``name`` is not configured.
        """
        try:
            return self.connectors[name]
        except KeyError:
            msg = f"The specified connector, {name}, does not exist in the configuration"
            raise ImproperConfigurationError(msg) from None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(connectors={sorted(self.connectors)!r}, timezone={self.timezone!r})"
