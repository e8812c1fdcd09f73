"""Request parameter extraction tolerant of how callers send them.

Admin tools and provider callbacks are inconsistent: some send a JSON
body, some send JSON with a text content type, some only use the query
string. Body values win over query parameters.
"""
from __future__ import annotations

import logging

from fastapi import Request

from musiclovely.utils.payloads import loads_or_none

logger = logging.getLogger(__name__)


async def read_body(request: Request) -> dict:
    """The request body as a dict; ``{}`` when it is empty or not a JSON object."""
    raw = await request.body()
    if not raw or not raw.strip():
        return {}
    data = loads_or_none(raw)
    if data is None:
        logger.debug("Ignoring non-JSON body on %s", request.url.path)
        return {}
    return data


async def request_params(request: Request) -> dict:
    params = dict(request.query_params)
    params.update(await read_body(request))
    return params


def param(params: dict, *names: str) -> str | None:
    """First non-blank value among *names*, stripped."""
    for name in names:
        value = params.get(name)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            return value
    return None
