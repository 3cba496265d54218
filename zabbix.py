import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Protocol, TypeVar

import requests

from credentials import User
from results import (BadStatus, BadUrl, Err, Error, NetworkError, Ok, Response, Result, Timeout, TransportError,
                     TransportResult, decode_response, string)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Decoder = Callable[[Any], T]


class HasUrl(Protocol):
    url: str


class HasToken(HasUrl, Protocol):
    token: Optional[str]


@dataclass(frozen=True)
class Param:
    """
    Everything needed to issue one JSON-RPC call.

    Args:
        url (str): Complete URL of the Zabbix API.
        token (Optional[str]): Session or API token, sent as "auth".
        method (str): RPC method name, e.g. "host.get".
        params (Mapping[str, Any]): Method parameters, in the order they should be sent.
    """
    url: str
    token: Optional[str]
    method: str
    params: Mapping[str, Any] = field(default_factory=dict)


def build_envelope(param: Param) -> Dict[str, Any]:
    return {
        "id": 0,
        "jsonrpc": "2.0",
        "method": param.method,
        "params": dict(param.params),
        "auth": param.token,
    }


def _post(param: Param, decoder: Decoder) -> Response:
    """
    Does the HTTP POST and decodes the body. Blocks the calling thread.

    Raises:
        TransportError: If the request fails or the body can't be decoded.
    """
    logger.debug(f"Calling {param.method} at {param.url}")

    try:
        response = requests.post(url=param.url, json=build_envelope(param), timeout=None)
    except (requests.exceptions.MissingSchema,
            requests.exceptions.InvalidSchema,
            requests.exceptions.InvalidURL) as e:
        logger.warning(f"Invalid Zabbix API URL {param.url}: {e}")
        raise BadUrl(param.url) from e
    except requests.exceptions.Timeout as e:
        logger.warning(f"Timeout calling {param.method}: {e}")
        raise Timeout() from e
    except requests.exceptions.RequestException as e:
        logger.warning(f"Network error calling {param.method}: {e}")
        raise NetworkError() from e

    if not 200 <= response.status_code < 300:
        logger.warning(f"{param.method} returned HTTP {response.status_code}")
        raise BadStatus(response.status_code)

    try:
        return decode_response(response.text, decoder)
    except TransportError:
        logger.warning(f"Could not decode {param.method} response: {response.text[:200]}")
        raise


async def call_task(param: Param, decoder: Decoder) -> Response:
    """
    Calls an RPC method and resolves to its Response.

    The HTTP request runs in a worker thread so the event loop is never blocked.
    Cancelling the awaiting task abandons the result.

    Args:
        param (Param): Call descriptor.
        decoder (Decoder): Decoder for the "result" payload.

    Returns:
        Response: Result or Error as reported by the server.

    Raises:
        TransportError: If the HTTP call fails or the body can't be decoded.
    """
    response = await asyncio.to_thread(_post, param, decoder)
    if isinstance(response, Error):
        logger.info(f"{param.method} failed with code {response.error.code}: {response.error.message}")
    return response


async def attempt(awaitable: Awaitable[Response]) -> TransportResult:
    """
    Awaits a call_task and returns its outcome as Ok(response) or Err(transport_error).
    """
    try:
        return Ok(await awaitable)
    except TransportError as e:
        return Err(e)


# Strong references to in-flight callback calls, the loop only keeps weak ones
_in_flight = set()


def call(param: Param, decoder: Decoder, callback: Callable[[TransportResult], Any]):
    """
    Calls an RPC method without waiting for it.

    Must be called from inside a running event loop. The callback receives
    the TransportResult exactly once, on a later turn of the loop, unless the
    underlying task is cancelled in which case it is never called.

    Args:
        param (Param): Call descriptor.
        decoder (Decoder): Decoder for the "result" payload.
        callback (Callable): Receives Ok(Response) or Err(TransportError).
    """
    task = asyncio.get_running_loop().create_task(attempt(call_task(param, decoder)))
    _in_flight.add(task)

    def on_done(done: asyncio.Task):
        _in_flight.discard(done)
        if done.cancelled():
            return
        callback(done.result())

    task.add_done_callback(on_done)


def _login_param(conf: HasUrl, user: User) -> Param:
    return Param(url=conf.url,
                 token=None,
                 method="user.login",
                 params={"user": user.username, "password": user.password})


def _version_param(conf: HasUrl) -> Param:
    return Param(url=conf.url, token=None, method="apiinfo.version", params={})


def login(conf: HasUrl, user: User, callback: Callable[[TransportResult], Any]):
    call(_login_param(conf, user), string, callback)


async def login_task(conf: HasUrl, user: User) -> Response:
    """
    Logs in and resolves to Result(session_token) or Error.
    """
    return await call_task(_login_param(conf, user), string)


def version(conf: HasUrl, callback: Callable[[TransportResult], Any]):
    call(_version_param(conf), string, callback)


async def version_task(conf: HasUrl) -> Response:
    return await call_task(_version_param(conf), string)


async def request_task(conf: HasToken, method: str, params: Optional[Mapping[str, Any]] = None,
                       decoder: Decoder = lambda value: value) -> Response:
    """
    Calls any API method with the token held by conf.

    Args:
        conf (HasToken): Provides the API url and the token sent as "auth".
        method (str): RPC method name.
        params (Optional[Mapping[str, Any]]): Method parameters.
        decoder (Decoder): Decoder for the result, returns the raw JSON value by default.

    Returns:
        Response: Result or Error.
    """
    param = Param(url=conf.url, token=conf.token, method=method, params=params or {})
    return await call_task(param, decoder)


class Zabbix:
    """
    Zabbix API client

    Uses JSON-RPC 2.0 and an api token for auth. The token can be given up
    front or obtained with login().
    """
    def __init__(self, api_url: str, api_key: Optional[str] = None):
        """
        Initializes a Zabbix API client.

        Args:
            api_url (str): Complete URL of the Zabbix API.
            api_key (Optional[str]): API token for authentication.
        """
        self.api_key = api_key
        self.api_url = api_url

    @property
    def url(self) -> str:
        return self.api_url

    @property
    def token(self) -> Optional[str]:
        return self.api_key

    async def version(self) -> Response:
        return await version_task(self)

    async def login(self, user: User) -> Response:
        """
        Logs in and keeps the session token for later requests.

        Args:
            user (User): Credentials to log in with.

        Returns:
            Response: Result(token) on success, Error if the server refused.
        """
        response = await login_task(self, user)
        if isinstance(response, Result):
            self.api_key = response.value
            logger.info(f"Logged in to {self.api_url} as {user.username}")
        return response

    async def request(self, method: str, params: Optional[Mapping[str, Any]] = None,
                      decoder: Decoder = lambda value: value) -> Response:
        """
        Calls any API method with the current token.
        """
        return await request_task(self, method, params, decoder)
