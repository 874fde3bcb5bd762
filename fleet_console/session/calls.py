"""
Guarded remote calls.

Every protected read goes through ``guarded_call``: transport errors,
the shared auth check and non-2xx statuses are turned into tagged
failures before the caller ever looks at a body.
"""

import logging
from typing import Any, Optional, Union

from fleet_console.errors import RemoteUnavailable
from fleet_console.models.outcomes import Failure, RemoteFailure, TransportFailure
from fleet_console.session.guard import SessionGuard
from fleet_console.transport.client import error_message, json_body

logger = logging.getLogger(__name__)


async def guarded_call(
    guard: SessionGuard,
    method: str,
    path: str,
    failure_message: str,
    json: Optional[Any] = None,
) -> Union[Any, Failure]:
    """Parsed JSON body (None when empty) on 2xx, else a Failure."""
    try:
        response = await guard.api.request(method, path, json=json)
    except RemoteUnavailable as e:
        logger.error("%s: %s", failure_message, e)
        return TransportFailure(message=failure_message)

    auth_failure = guard.handle_auth_failure(response)
    if auth_failure is not None:
        return auth_failure

    if not response.is_success:
        message = error_message(response, failure_message)
        logger.error("%s %s failed (%s): %s", method, path, response.status_code, message)
        return RemoteFailure(status_code=response.status_code, message=message)

    return json_body(response)
