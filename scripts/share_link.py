#!/usr/bin/env python3
"""VMess share links - vmess://base64(json)

Link JSON structure (all values are strings, empty values are kept):
    {
        "v": "2",
        "ps": "remark",
        "add": "server.com",
        "port": "443",
        "id": "uuid",
        "aid": "0",
        "net": "ws",
        "type": "none",
        "host": "example.com",
        "path": "/path",
        "tls": "tls",
        "sni": "example.com"
    }
"""

import base64
import binascii
import io
import json
from typing import BinaryIO, Dict

from pydantic import ValidationError

from publisher_models import VMessServer

VMESS_SCHEME = "vmess://"

# link key -> VMessServer attribute, in wire order
LINK_FIELDS = (
    ("v", "config_version"),
    ("ps", "remarks"),
    ("add", "address"),
    ("port", "port"),
    ("id", "id"),
    ("aid", "alter_id"),
    ("net", "network"),
    ("type", "header_type"),
    ("host", "request_host"),
    ("path", "path"),
    ("tls", "stream_security"),
    ("sni", "sni"),
)


class ShareLinkError(Exception):
    """A share link could not be rendered or parsed"""
    pass


def link_payload(server: VMessServer) -> Dict[str, str]:
    """Abbreviated-key object carried inside the link."""
    return {key: getattr(server, attr) for key, attr in LINK_FIELDS}


def write_share_link(server: VMessServer, stream: BinaryIO) -> None:
    """Write vmess://base64(json) for server to a binary stream.

    Nothing is written if the payload cannot be serialized.
    """
    try:
        payload = json.dumps(
            link_payload(server), separators=(",", ":"), ensure_ascii=False
        ).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise ShareLinkError(f"Failed to serialize VMess server '{server.remarks}': {e}") from e

    stream.write(VMESS_SCHEME.encode("ascii"))
    stream.write(base64.b64encode(payload))


def share_link(server: VMessServer) -> str:
    """Return the share link as text, byte-identical to write_share_link."""
    buf = io.BytesIO()
    write_share_link(server, buf)
    return buf.getvalue().decode("ascii")


def parse_share_link(link: str) -> VMessServer:
    """Decode a vmess:// link back into a VMessServer.

    Accepts URL-safe base64 and missing padding; link keys outside the
    VMessServer schema (scy, alpn, fp, ...) are ignored.
    """
    link = link.strip()
    if not link.startswith(VMESS_SCHEME):
        raise ShareLinkError("Invalid VMess link: must start with vmess://")

    b64_data = link[len(VMESS_SCHEME):].replace("-", "+").replace("_", "/")
    padding = 4 - len(b64_data) % 4
    if padding != 4:
        b64_data += "=" * padding

    try:
        json_str = base64.b64decode(b64_data, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ShareLinkError(f"Failed to decode VMess base64: {e}") from e

    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise ShareLinkError(f"Failed to parse VMess JSON: {e}") from e

    if not isinstance(data, dict):
        raise ShareLinkError("VMess link payload must be a JSON object")

    fields = {attr: data[key] for key, attr in LINK_FIELDS if key in data}
    try:
        return VMessServer.model_validate(fields)
    except ValidationError as e:
        raise ShareLinkError(f"Invalid VMess link payload: {e}") from e
