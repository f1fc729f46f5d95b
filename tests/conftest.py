"""
Pytest configuration and fixtures for publisher tests.
"""

import copy
import json
import sys
import tempfile
from pathlib import Path
from typing import Callable, Generator

import pytest

# Add scripts directory to path for imports
SCRIPTS_DIR = Path(__file__).parent.parent / "scripts"
sys.path.insert(0, str(SCRIPTS_DIR))

ALICE_KEY = "abcdefghij0123"
BOB_KEY = "BobKey0123456789"

SAMPLE_CONFIG = {
    "publisher": {"name": "test publisher", "anything": [1, 2, 3]},
    "vmessServers": {
        "s1": {
            "address": "example.com",
            "port": "443",
            "id": "uuid-1",
            "network": "ws",
            "streamSecurity": "tls",
        },
        "s2": {
            "configVersion": "2",
            "remarks": "tokyo",
            "address": "jp.example.com",
            "port": "8443",
            "id": "uuid-2",
            "alterId": "0",
            "network": "tcp",
            "headerType": "none",
            "requestHost": "cdn.example.com",
            "path": "/ray",
            "streamSecurity": "tls",
            "sni": "jp.example.com",
        },
    },
    "routingRules": {
        "r1": [{"outboundTag": "proxy"}],
        "r2": [
            {"domain": ["geosite:cn"], "outboundTag": "direct"},
            {"ip": ["geoip:private", "geoip:cn"], "port": "0-65535", "outboundTag": "direct"},
            {"protocol": ["bittorrent"], "outboundTag": "block"},
        ],
    },
    "subscribers": [
        {
            "remarks": "alice",
            "key": ALICE_KEY,
            "vmessServers": ["s1"],
            "routingRules": ["r1"],
        },
        {
            "remarks": "bob",
            "key": BOB_KEY,
            "vmessServers": ["s2", "s1"],
            "routingRules": ["r1", "r2"],
        },
    ],
}


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_config() -> dict:
    """A valid configuration document (deep copy, safe to mutate)."""
    return copy.deepcopy(SAMPLE_CONFIG)


@pytest.fixture
def write_config(temp_dir: Path) -> Callable[..., Path]:
    """Write a document to a JSON config file and return its path."""

    def _write(document, name: str = "config.json") -> Path:
        path = temp_dir / name
        if isinstance(document, str):
            path.write_text(document)
        else:
            path.write_text(json.dumps(document))
        return path

    return _write


@pytest.fixture
def publisher_config(sample_config):
    """Loaded snapshot of the sample configuration."""
    from config_loader import load_config

    return load_config(sample_config)


@pytest.fixture
def publisher(publisher_config):
    from publisher import Publisher

    return Publisher(publisher_config)
