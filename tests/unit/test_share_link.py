"""
Unit tests for share_link.py - vmess:// rendering and parsing.
"""

import base64
import io
import json

import pytest


def _decode(link: str) -> dict:
    assert link.startswith("vmess://")
    return json.loads(base64.b64decode(link[len("vmess://"):], validate=True))


@pytest.fixture
def full_server():
    from publisher_models import VMessServer

    return VMessServer.model_validate({
        "configVersion": "2",
        "remarks": "tokyo",
        "address": "jp.example.com",
        "port": "8443",
        "id": "b831381d-6324-4d53-ad4f-8cda48b30811",
        "alterId": "0",
        "network": "ws",
        "headerType": "none",
        "requestHost": "cdn.example.com",
        "path": "/ray",
        "streamSecurity": "tls",
        "sni": "jp.example.com",
    })


class TestRenderShareLink:
    """Tests for share link rendering."""

    def test_concrete_link_bytes(self):
        from publisher_models import VMessServer
        from share_link import share_link

        server = VMessServer.model_validate({
            "address": "example.com",
            "port": "443",
            "id": "uuid-1",
            "network": "ws",
            "streamSecurity": "tls",
        })
        expected_json = (
            '{"v":"","ps":"","add":"example.com","port":"443","id":"uuid-1","aid":"",'
            '"net":"ws","type":"","host":"","path":"","tls":"tls","sni":""}'
        )
        expected = "vmess://" + base64.b64encode(expected_json.encode()).decode()

        assert share_link(server) == expected

    def test_field_mapping(self, full_server):
        from share_link import share_link

        assert _decode(share_link(full_server)) == {
            "v": "2",
            "ps": "tokyo",
            "add": "jp.example.com",
            "port": "8443",
            "id": "b831381d-6324-4d53-ad4f-8cda48b30811",
            "aid": "0",
            "net": "ws",
            "type": "none",
            "host": "cdn.example.com",
            "path": "/ray",
            "tls": "tls",
            "sni": "jp.example.com",
        }

    def test_key_order_fixed(self, full_server):
        from share_link import share_link

        keys = list(_decode(share_link(full_server)).keys())
        assert keys == ["v", "ps", "add", "port", "id", "aid", "net", "type", "host", "path", "tls", "sni"]

    def test_empty_fields_emitted(self):
        from publisher_models import VMessServer
        from share_link import share_link

        data = _decode(share_link(VMessServer()))
        assert len(data) == 12
        assert all(value == "" for value in data.values())

    def test_stream_and_string_identical(self, full_server):
        from share_link import share_link, write_share_link

        buf = io.BytesIO()
        write_share_link(full_server, buf)
        assert buf.getvalue() == share_link(full_server).encode("ascii")

    def test_stream_appends(self, full_server):
        from share_link import share_link, write_share_link

        buf = io.BytesIO()
        buf.write(b"prefix|")
        write_share_link(full_server, buf)
        assert buf.getvalue() == b"prefix|" + share_link(full_server).encode()

    def test_standard_padded_base64(self):
        from publisher_models import VMessServer
        from share_link import share_link

        # remark chosen so the payload needs padding
        link = share_link(VMessServer(remarks="a"))
        encoded = link[len("vmess://"):]
        assert len(encoded) % 4 == 0
        assert "-" not in encoded and "_" not in encoded

    def test_unicode_remarks(self):
        from publisher_models import VMessServer
        from share_link import share_link

        data = _decode(share_link(VMessServer(remarks="東京 节点")))
        assert data["ps"] == "東京 节点"

    def test_unserializable_value_raises(self):
        from publisher_models import VMessServer
        from share_link import ShareLinkError, write_share_link

        # only reachable with unvalidated internal state
        server = VMessServer.model_construct(remarks=object())
        buf = io.BytesIO()
        with pytest.raises(ShareLinkError):
            write_share_link(server, buf)
        assert buf.getvalue() == b""


class TestParseShareLink:
    """Tests for decoding share links."""

    def test_round_trip(self, full_server):
        from share_link import parse_share_link, share_link

        assert parse_share_link(share_link(full_server)) == full_server

    def test_url_safe_unpadded(self, full_server):
        from share_link import link_payload, parse_share_link

        raw = json.dumps(link_payload(full_server)).encode()
        link = "vmess://" + base64.urlsafe_b64encode(raw).decode().rstrip("=")
        assert parse_share_link(link) == full_server

    def test_extra_link_keys_ignored(self):
        from share_link import parse_share_link

        payload = {"v": "2", "add": "a.example.com", "port": 443, "scy": "auto", "fp": "chrome"}
        link = "vmess://" + base64.b64encode(json.dumps(payload).encode()).decode()
        server = parse_share_link(link)
        assert server.address == "a.example.com"
        assert server.port == "443"

    @pytest.mark.parametrize("link", [
        "vless://uuid@example.com:443",
        "vmess://!!!not-base64!!!",
        "vmess://" + base64.b64encode(b"not json").decode(),
        "vmess://" + base64.b64encode(b"[1, 2]").decode(),
    ])
    def test_invalid_links(self, link):
        from share_link import ShareLinkError, parse_share_link

        with pytest.raises(ShareLinkError):
            parse_share_link(link)
