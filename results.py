import json
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


class DecodeError(ValueError):
    """Raised by a decoder when a JSON value does not have the expected shape."""


def string(value: Any) -> str:
    """Decoder for a plain JSON string."""
    if not isinstance(value, str):
        raise DecodeError(f"Expected a string, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class RpcError:
    """
    Error object reported by the server inside a JSON-RPC response.
    """
    code: int
    message: str
    data: Optional[str] = None


@dataclass(frozen=True)
class Result(Generic[T]):
    value: T


@dataclass(frozen=True)
class Error:
    error: RpcError


Response = Union[Result[T], Error]


class TransportError(Exception):
    """
    Base class for failures of the HTTP call itself.

    Instances are values: they are compared by type and payload so they can
    be carried inside Err and TransportFailure.
    """
    __match_args__ = ()

    def __eq__(self, other):
        return type(self) is type(other) and self.args == other.args

    def __hash__(self):
        return hash((type(self), self.args))

    def __repr__(self):
        return f"{type(self).__name__}({', '.join(repr(a) for a in self.args)})"


class BadUrl(TransportError):
    __match_args__ = ("url",)

    def __init__(self, url: str):
        super().__init__(url)
        self.url = url


class Timeout(TransportError):
    pass


class NetworkError(TransportError):
    pass


class BadStatus(TransportError):
    __match_args__ = ("status",)

    def __init__(self, status: int):
        super().__init__(status)
        self.status = status


class BadBody(TransportError):
    __match_args__ = ("body",)

    def __init__(self, body: str):
        super().__init__(body)
        self.body = body


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E


TransportResult = Union[Ok[Response[T]], Err[TransportError]]


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T


@dataclass(frozen=True)
class RpcFailure:
    error: RpcError


@dataclass(frozen=True)
class TransportFailure:
    error: TransportError


FlatResult = Union[Success[T], RpcFailure, TransportFailure]


def _decode_rpc_error(value: Any) -> RpcError:
    if not isinstance(value, dict):
        raise DecodeError("error is not an object")
    code = value.get("code")
    message = value.get("message")
    data = value.get("data")
    # bool is an int subclass but never a valid code
    if not isinstance(code, int) or isinstance(code, bool):
        raise DecodeError("error.code is not an integer")
    if not isinstance(message, str):
        raise DecodeError("error.message is not a string")
    if data is not None and not isinstance(data, str):
        raise DecodeError("error.data is not a string")
    return RpcError(code=code, message=message, data=data)


def decode_response(body: str, decoder: Callable[[Any], T]) -> Response[T]:
    """
    Decodes the body of a successful HTTP response into a Response.

    The "result" field is tried first, then "error".

    Args:
        body (str): Raw response text.
        decoder (Callable): Decoder for the success payload.

    Returns:
        Response: Result or Error.

    Raises:
        BadBody: If the body is not JSON or neither field decodes.
    """
    try:
        document = json.loads(body)
    except (ValueError, RecursionError) as e:
        raise BadBody(body) from e

    cause = None
    if isinstance(document, dict):
        if "result" in document:
            try:
                return Result(decoder(document["result"]))
            except Exception as e:
                # any decoder failure is a type mismatch on the payload
                cause = e
        if "error" in document:
            try:
                return Error(_decode_rpc_error(document["error"]))
            except DecodeError as e:
                cause = e

    raise BadBody(body) from cause


def flat_response(response: Response[T]) -> FlatResult[T]:
    match response:
        case Result(value):
            return Success(value)
        case Error(error):
            return RpcFailure(error)
    raise TypeError(f"Not a Response: {response!r}")


def flat(result: TransportResult[T]) -> FlatResult[T]:
    """
    Collapses a transport outcome and the RPC outcome inside it into one FlatResult.
    """
    match result:
        case Ok(response):
            return flat_response(response)
        case Err(error):
            return TransportFailure(error)
    raise TypeError(f"Not a TransportResult: {result!r}")


def rpc_err_to_string(error: RpcError) -> str:
    text = f"Code: {error.code} Message: {error.message}"
    if error.data is not None:
        text += f" Data: {error.data}"
    return text


def http_err_to_string(error: TransportError) -> str:
    """
    Renders a transport error as a human readable message.

    Args:
        error (TransportError): The failure to describe.

    Returns:
        str: The message. For BadBody this is the raw response text.
    """
    match error:
        case BadUrl(url):
            return f"Bad URL: {url}"
        case Timeout():
            return "Timeout"
        case NetworkError():
            return "Network error"
        case BadStatus(status):
            return f"Bad status: {status}"
        case BadBody(body):
            return body
    raise TypeError(f"Not a TransportError: {error!r}")


def to_result(result: FlatResult[T]) -> Union[Ok[T], Err[str]]:
    """
    Converts a FlatResult into Ok(value) or Err(message).
    """
    match result:
        case Success(value):
            return Ok(value)
        case RpcFailure(error):
            return Err(rpc_err_to_string(error))
        case TransportFailure(error):
            return Err(http_err_to_string(error))
    raise TypeError(f"Not a FlatResult: {result!r}")
