#!/usr/bin/env python3
"""Entities of the publisher configuration: VMess servers, routing rules, subscribers.

Field aliases are the keys used in the configuration document. All models are
frozen; they are built once at load time and only read afterwards.
"""

import re
from typing import Any, Dict, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Subscriber key: 10-32 ASCII letters or digits
SUBSCRIBER_KEY_PATTERN = re.compile(r"[A-Za-z0-9]{10,32}")


class VMessServer(BaseModel):
    """A VMess server as understood by v2rayN."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    # Identifies the share link format version for the client
    config_version: str = Field("", alias="configVersion")
    remarks: str = ""
    address: str = ""
    port: str = ""
    # User id (UUID) on the server
    id: str = ""
    alter_id: str = Field("", alias="alterId")
    # Transport: tcp, kcp, ws, h2, quic
    network: str = ""
    # Masquerade header: none, http, srtp, utp, wechat-video
    header_type: str = Field("", alias="headerType")
    request_host: str = Field("", alias="requestHost")
    # ws path, h2 path or QUIC key / kcp seed
    path: str = ""
    stream_security: str = Field("", alias="streamSecurity")
    sni: str = ""


class RoutingRule(BaseModel):
    """One v2rayN routing rule bound to an outbound tag."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    domain: Tuple[str, ...] = ()
    ip: Tuple[str, ...] = ()
    # e.g. 80, 443, 1000-2000
    port: str = ""
    # e.g. http, tls, bittorrent
    protocol: Tuple[str, ...] = ()
    # e.g. direct, proxy, block
    outbound_tag: str = Field(..., alias="outboundTag")

    def to_dict(self) -> Dict[str, Any]:
        """Client representation: empty fields are dropped, outboundTag is always kept."""
        data: Dict[str, Any] = {}
        if self.domain:
            data["domain"] = list(self.domain)
        if self.ip:
            data["ip"] = list(self.ip)
        if self.port:
            data["port"] = self.port
        if self.protocol:
            data["protocol"] = list(self.protocol)
        data["outboundTag"] = self.outbound_tag
        return data


class Subscriber(BaseModel):
    """A user who pulls servers and routing rules from the publisher."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    remarks: str = ""
    # Capability token used in the publish URLs
    key: str = ""
    vmess_servers: Tuple[str, ...] = Field((), alias="vmessServers")
    routing_rules: Tuple[str, ...] = Field((), alias="routingRules")

    @field_validator("key", mode="before")
    @classmethod
    def _null_key_is_empty(cls, value: Any) -> Any:
        # `key:` with no value in YAML; reported as an invalid key by the loader
        return "" if value is None else value


def is_valid_subscriber_key(key: str) -> bool:
    return SUBSCRIBER_KEY_PATTERN.fullmatch(key) is not None
