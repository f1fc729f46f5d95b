#!/usr/bin/env python3
"""Publication service

Answers the two subscriber lookups against a validated PublisherConfig:
- the server list: newline separated vmess:// share links, base64 encoded as a whole
- a routing rule set the subscriber is allowed to fetch

The service only reads the snapshot, so one instance can serve concurrent
requests without locking. Every response is built in a request-local buffer
and returned only when complete.
"""

import base64
import io
import json
import logging
from typing import Any, Dict, List, Optional

from config_loader import PublisherConfig
from log_config import get_logger
from publisher_models import Subscriber
from share_link import ShareLinkError, write_share_link


class PublishError(Exception):
    """A publish request could not be answered"""
    pass


class NotFoundError(PublishError):
    """Answered as 404; the cause is only visible in the server log"""
    pass


class SubscriberNotFoundError(NotFoundError):
    """No subscriber has the requested key"""
    pass


class RuleSetNotFoundError(NotFoundError):
    """The subscriber is not allowed to fetch the requested rule set"""
    pass


class PublishInternalError(PublishError):
    """The snapshot is inconsistent or a value could not be rendered (500)"""
    pass


def is_rule_set_allowed(subscriber: Subscriber, rules_id: str) -> bool:
    """Authorization join between a subscriber and a rule set id."""
    return rules_id in subscriber.routing_rules


class Publisher:
    """Serves share links and routing rules to subscribers"""

    def __init__(self, config: PublisherConfig, logger: Optional[logging.Logger] = None):
        self.config = config
        self.logger = logger or get_logger(__name__)

    def find_subscriber(self, key: str) -> Subscriber:
        subscriber = self.config.subscriber_index.get(key)
        if subscriber is None:
            self.logger.warning(f"Invalid key received: {key}, response with HTTP 404")
            raise SubscriberNotFoundError(key)
        return subscriber

    def get_server_list(self, key: str) -> bytes:
        """Share links of every server of the subscriber, one per line, base64 encoded.

        Raises:
            SubscriberNotFoundError: unknown key
            PublishInternalError: a referenced server is missing or cannot be rendered
        """
        subscriber = self.find_subscriber(key)

        buf = io.BytesIO()
        for server_id in subscriber.vmess_servers:
            server = self.config.servers.get(server_id)
            if server is None:
                self.logger.error(
                    f"Subscriber({subscriber.remarks}) want VMess Server({server_id}), "
                    f"but not found, response with HTTP 500"
                )
                raise PublishInternalError(f"VMess server {server_id} missing from index")
            try:
                write_share_link(server, buf)
            except ShareLinkError as e:
                self.logger.error(f"Marshal VMess server ({server_id}) error: {e}")
                raise PublishInternalError(str(e)) from e
            buf.write(b"\n")

        self.logger.debug(f"Success response to Subscriber({subscriber.remarks})")
        return base64.b64encode(buf.getvalue())

    def get_routing_rule_set(self, key: str, rules_id: str) -> List[Dict[str, Any]]:
        """Rule set rules_id, if the subscriber may fetch it.

        Raises:
            SubscriberNotFoundError: unknown key
            RuleSetNotFoundError: rules_id is not in the subscriber's list
            PublishInternalError: an allowed rule set is missing from the index
        """
        subscriber = self.find_subscriber(key)

        if not is_rule_set_allowed(subscriber, rules_id):
            self.logger.warning(
                f"Subscriber({subscriber.remarks}) want Routing Rule({rules_id}), "
                f"but not allow, response with HTTP 404"
            )
            raise RuleSetNotFoundError(rules_id)

        rules = self.config.routing_rules.get(rules_id)
        if rules is None:
            self.logger.error(
                f"Subscriber({subscriber.remarks}) want Routing Rule({rules_id}), "
                f"but not found, response with HTTP 500"
            )
            raise PublishInternalError(f"Routing rule set {rules_id} missing from index")

        return [rule.to_dict() for rule in rules]

    def get_routing_rule_set_json(self, key: str, rules_id: str) -> bytes:
        """get_routing_rule_set encoded as compact JSON."""
        rules = self.get_routing_rule_set(key, rules_id)
        try:
            return json.dumps(rules, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            self.logger.error(f"Marshal routing rule ({rules_id}) error: {e}")
            raise PublishInternalError(str(e)) from e
