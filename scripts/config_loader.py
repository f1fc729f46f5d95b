#!/usr/bin/env python3
"""Publisher configuration loader

Reads the administrator's configuration document once at startup, validates
it and builds the lookup indexes the publisher serves from.

Document structure (JSON, or YAML for .yaml/.yml files):
    {
        "publisher": {...},                          # ignored
        "vmessServers": {"<server id>": {...}},
        "routingRules": {"<rules id>": [{...}, ...]},
        "subscribers": [
            {"remarks": "...", "key": "...", "vmessServers": [...], "routingRules": [...]}
        ]
    }

A document is accepted as a whole or not at all: every error is raised before
a PublisherConfig is constructed, and each load builds its own containers.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import yaml
from pydantic import TypeAdapter, ValidationError

from log_config import get_logger
from publisher_models import (
    RoutingRule,
    Subscriber,
    VMessServer,
    is_valid_subscriber_key,
)

YAML_SUFFIXES = frozenset({".yaml", ".yml"})

_SERVERS_ADAPTER = TypeAdapter(Dict[str, VMessServer])
_ROUTING_RULES_ADAPTER = TypeAdapter(Dict[str, List[RoutingRule]])
_SUBSCRIBERS_ADAPTER = TypeAdapter(List[Subscriber])


class ConfigError(Exception):
    """Configuration could not be loaded; the publisher must not start"""
    pass


class ConfigReadError(ConfigError):
    """Configuration file is missing or unreadable"""
    pass


class ConfigParseError(ConfigError):
    """Configuration document is malformed or has the wrong shape"""
    pass


class UnknownFieldError(ConfigError):
    """Unrecognized top-level field"""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Parse config error: Unknown config field '{field}'")


class InvalidSubscriberKeyError(ConfigError):
    """Subscriber key is not 10-32 alphanumeric characters"""

    def __init__(self, remarks: str):
        self.remarks = remarks
        super().__init__(
            f"validate config error: Subscriber({remarks}) key must be 10-32 alphanumeric characters"
        )


class DanglingServerReferenceError(ConfigError):
    """Subscriber references a VMess server that is not configured"""

    def __init__(self, remarks: str, server_id: str):
        self.remarks = remarks
        self.server_id = server_id
        super().__init__(f"Subscriber({remarks}) want VMess Server({server_id}), but not found")


class DanglingRuleSetReferenceError(ConfigError):
    """Subscriber references a routing rule set that is not configured"""

    def __init__(self, remarks: str, rules_id: str):
        self.remarks = remarks
        self.rules_id = rules_id
        super().__init__(f"Subscriber({remarks}) want Routing Rule({rules_id}), but not found")


class DuplicateSubscriberKeyError(ConfigError):
    """Two subscribers share a key"""

    def __init__(self, key: str):
        self.key = key
        super().__init__(
            f"validate config error: duplicate subscriber key ({key}) found, which is not allowed"
        )


@dataclass(frozen=True)
class PublisherConfig:
    """Validated, read-only configuration snapshot"""
    # server id -> server
    servers: Mapping[str, VMessServer]
    # rules id -> ordered rule set
    routing_rules: Mapping[str, Tuple[RoutingRule, ...]]
    # document order
    subscribers: Tuple[Subscriber, ...]
    # subscriber key -> subscriber
    subscriber_index: Mapping[str, Subscriber]


class ConfigLoader:
    """Parses and validates configuration documents

    Every error is logged at ERROR level before it is raised.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or get_logger(__name__)

    def load_file(self, path: Union[str, Path]) -> PublisherConfig:
        """Read, parse and validate a configuration file."""
        path = Path(path)
        try:
            raw = path.read_bytes()
        except OSError as e:
            raise self._logged(ConfigReadError(f"Read config file ({path}) error: {e}")) from e

        if path.suffix.lower() in YAML_SUFFIXES:
            try:
                document = yaml.safe_load(raw)
            except yaml.YAMLError as e:
                raise self._logged(ConfigParseError(f"Parse config error: {e}")) from e
        else:
            try:
                document = json.loads(raw)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise self._logged(ConfigParseError(f"Parse config error: {e}")) from e

        config = self.load(document)
        self.logger.info(
            f"Loaded config {path}: {len(config.servers)} VMess servers, "
            f"{len(config.routing_rules)} routing rule sets, {len(config.subscribers)} subscribers"
        )
        return config

    def load(self, document: Any) -> PublisherConfig:
        """Validate an already decoded document and build the snapshot."""
        if not isinstance(document, Mapping):
            raise self._logged(ConfigParseError("Parse config error: top-level value must be an object"))

        servers: Dict[str, VMessServer] = {}
        routing_rules: Dict[str, List[RoutingRule]] = {}
        subscribers: List[Subscriber] = []

        for field, value in document.items():
            if field == "publisher":
                continue
            elif field == "vmessServers":
                servers = self._parse_section(field, _SERVERS_ADAPTER, value, {})
            elif field == "routingRules":
                routing_rules = self._parse_section(field, _ROUTING_RULES_ADAPTER, value, {})
            elif field == "subscribers":
                subscribers = self._parse_section(field, _SUBSCRIBERS_ADAPTER, value, [])
            else:
                raise self._logged(UnknownFieldError(field))

        self._validate_subscribers(subscribers, servers, routing_rules)
        subscriber_index = self._build_subscriber_index(subscribers)

        return PublisherConfig(
            servers=MappingProxyType(dict(servers)),
            routing_rules=MappingProxyType(
                {rules_id: tuple(rules) for rules_id, rules in routing_rules.items()}
            ),
            subscribers=tuple(subscribers),
            subscriber_index=MappingProxyType(subscriber_index),
        )

    def _parse_section(self, field: str, adapter: TypeAdapter, value: Any, empty: Any) -> Any:
        # null sections are treated as empty
        if value is None:
            return empty
        try:
            return adapter.validate_python(value)
        except ValidationError as e:
            raise self._logged(ConfigParseError(f"Parse config error: invalid '{field}' section: {e}")) from e

    def _validate_subscribers(
        self,
        subscribers: List[Subscriber],
        servers: Mapping[str, VMessServer],
        routing_rules: Mapping[str, List[RoutingRule]],
    ) -> None:
        for subscriber in subscribers:
            if not is_valid_subscriber_key(subscriber.key):
                raise self._logged(InvalidSubscriberKeyError(subscriber.remarks))

            for server_id in subscriber.vmess_servers:
                if server_id not in servers:
                    raise self._logged(DanglingServerReferenceError(subscriber.remarks, server_id))

            for rules_id in subscriber.routing_rules:
                if rules_id not in routing_rules:
                    raise self._logged(DanglingRuleSetReferenceError(subscriber.remarks, rules_id))

    def _build_subscriber_index(self, subscribers: List[Subscriber]) -> Dict[str, Subscriber]:
        index: Dict[str, Subscriber] = {}
        for subscriber in subscribers:
            if subscriber.key in index:
                raise self._logged(DuplicateSubscriberKeyError(subscriber.key))
            index[subscriber.key] = subscriber
        return index

    def _logged(self, error: ConfigError) -> ConfigError:
        self.logger.error(str(error))
        return error


def load_config(document: Any, logger: Optional[logging.Logger] = None) -> PublisherConfig:
    """Validate a decoded configuration document."""
    return ConfigLoader(logger).load(document)


def load_config_file(path: Union[str, Path], logger: Optional[logging.Logger] = None) -> PublisherConfig:
    """Read and validate a configuration file."""
    return ConfigLoader(logger).load_file(path)
