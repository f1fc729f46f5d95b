#!/usr/bin/env python3
"""FastAPI app: publishes VMess servers and routing rules to subscribers

Endpoints:
    GET /publish/{key}/servers
    GET /publish/{key}/routingRules/{rulesID}

Every not-found cause gets the same 404 body; internal inconsistencies get a
fixed 500 message and the details go to the log only.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from log_config import get_logger
from publisher import NotFoundError, PublishInternalError, Publisher

NOT_FOUND_MESSAGE = "404 page not found"
INTERNAL_ERROR_MESSAGE = "Server Internal Error, Please tell the administrator."

SERVERS_ROUTE = "/publish/{key}/servers"
ROUTING_RULES_ROUTE = "/publish/{key}/routingRules/{rulesID}"


def create_app(publisher: Publisher, logger: Optional[logging.Logger] = None) -> FastAPI:
    """Build the HTTP app around a loaded publisher."""
    logger = logger or get_logger(__name__)

    # no docs/openapi routes: nothing but the publish endpoints is exposed
    app = FastAPI(
        title="v2rayN Publisher",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.publisher = publisher

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> Response:
        return PlainTextResponse(NOT_FOUND_MESSAGE, status_code=404)

    @app.exception_handler(PublishInternalError)
    async def internal_error_handler(request: Request, exc: PublishInternalError) -> Response:
        return PlainTextResponse(INTERNAL_ERROR_MESSAGE, status_code=500)

    # unmatched routes get the same 404 body as an unknown key
    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> Response:
        if exc.status_code == 404:
            return PlainTextResponse(NOT_FOUND_MESSAGE, status_code=404)
        return await http_exception_handler(request, exc)

    logger.info(f"publish servers endpoint:  {SERVERS_ROUTE}")

    @app.get(SERVERS_ROUTE)
    def publish_servers(key: str) -> Response:
        body = publisher.get_server_list(key)
        return Response(content=body, media_type="text/plain; charset=utf-8")

    logger.info(f"publish routing rules endpoint:  {ROUTING_RULES_ROUTE}")

    @app.get(ROUTING_RULES_ROUTE)
    def publish_routing_rules(key: str, rulesID: str) -> Response:
        body = publisher.get_routing_rule_set_json(key, rulesID)
        return Response(content=body, media_type="application/json")

    return app
