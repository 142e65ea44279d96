"""Protocol handlers: one request builder and one response parser per operation.

Builders turn API arguments into a :class:`Request`; parsers turn the decoded
JSON body of a successful HTTP exchange into an :class:`Outcome`. Parsers never
raise: malformed bodies become FORMAT_ERROR, undecryptable messages become
DECRYPTION_ERROR.
"""

from dataclasses import dataclass, field
from typing import Any, Callable
from urllib.parse import quote

from .config import PubNubConfig
from .crypto import PubNubCipher, dumps, sign_publish
from .mechanism import DecryptionError
from .result import Completion, OperationKind, PNResult
from .subscribe import ChannelSet, SubscribeMultiplexer, channel_set, decrypt_messages
from .utils import get_short_error_info

Handler = Callable[[Any, Completion], None]


@dataclass
class Request:
    """One logical operation, re-issued verbatim on retry.

    ``cipher`` is captured when the request is built so that setters called
    afterwards only affect later requests.
    """

    kind: OperationKind
    origin: str
    path: tuple[str, ...]
    query: dict[str, str]
    timeout: float
    channels: ChannelSet = ()
    cipher: PubNubCipher | None = None
    handler: Handler | None = None
    call_data: Any = None
    include_token: bool = False

    @property
    def url(self) -> str:
        path = "/".join(quote(segment, safe="") for segment in self.path)
        return f"{self.origin}/{path}"


@dataclass(frozen=True)
class Outcome:
    result: PNResult
    value: Any = None
    channels: tuple[str, ...] = field(default=())
    detail: str = ""


def _cipher(config: PubNubConfig) -> PubNubCipher | None:
    if config.cipher_key:
        return PubNubCipher(config.cipher_key)
    return None


def _base_query(config: PubNubConfig) -> dict[str, str]:
    return {"uuid": config.uuid}


# =============================================================================
# Builders
# =============================================================================


def build_publish(config: PubNubConfig, channel: str, message: Any, timeout: float) -> Request:
    (channel,) = channel_set(channel)
    cipher = _cipher(config)

    if cipher is not None:
        text = dumps(cipher.encrypt(message))
    else:
        text = dumps(message)

    signature = sign_publish(
        config.publish_key, config.subscribe_key, config.secret_key, channel, text
    )
    path = ("publish", config.publish_key, config.subscribe_key, signature, channel, "0", text)
    return Request(
        kind=OperationKind.PUBLISH,
        origin=config.origin,
        path=path,
        query=_base_query(config),
        timeout=timeout,
        channels=(channel,),
        cipher=cipher,
    )


def build_subscribe(
    config: PubNubConfig, channels: ChannelSet, timetoken: str, timeout: float
) -> Request:
    path = ("subscribe", config.subscribe_key, ",".join(channels), "0", timetoken)
    return Request(
        kind=OperationKind.SUBSCRIBE,
        origin=config.origin,
        path=path,
        query=_base_query(config),
        timeout=timeout,
        channels=channels,
        cipher=_cipher(config),
    )


def build_history(
    config: PubNubConfig, channel: str, limit: int, include_token: bool, timeout: float
) -> Request:
    (channel,) = channel_set(channel)
    if not isinstance(limit, int) or limit <= 0:
        raise ValueError(f"history limit must be a positive integer, got {limit!r}")

    query = _base_query(config)
    query["count"] = str(limit)
    if include_token:
        query["include_token"] = "true"

    path = ("v2", "history", "sub-key", config.subscribe_key, "channel", channel)
    return Request(
        kind=OperationKind.HISTORY,
        origin=config.origin,
        path=path,
        query=query,
        timeout=timeout,
        channels=(channel,),
        cipher=_cipher(config),
        include_token=include_token,
    )


def build_here_now(config: PubNubConfig, channel: str, timeout: float) -> Request:
    (channel,) = channel_set(channel)
    path = ("v2", "presence", "sub-key", config.subscribe_key, "channel", channel)
    return Request(
        kind=OperationKind.HERE_NOW,
        origin=config.origin,
        path=path,
        query=_base_query(config),
        timeout=timeout,
        channels=(channel,),
    )


def build_time(config: PubNubConfig, timeout: float) -> Request:
    return Request(
        kind=OperationKind.TIME,
        origin=config.origin,
        path=("time", "0"),
        query=_base_query(config),
        timeout=timeout,
    )


# =============================================================================
# Parsers
# =============================================================================


def _format_error(detail: str) -> Outcome:
    return Outcome(PNResult.FORMAT_ERROR, detail=detail)


def _decryption_error(e: DecryptionError) -> Outcome:
    return Outcome(PNResult.DECRYPTION_ERROR, detail=get_short_error_info(e.exception))


def parse_publish(request: Request, body: Any) -> Outcome:
    if not isinstance(body, list) or len(body) < 2 or body[0] not in (0, 1):
        return _format_error("publish response must be [status, description, ...]")
    if body[0] == 1:
        return Outcome(PNResult.OK, value=body)
    return Outcome(PNResult.PUBLISH_FAILED, value=body, detail=str(body[1]))


def parse_history(request: Request, body: Any) -> Outcome:
    if not isinstance(body, list) or len(body) != 3 or not isinstance(body[0], list):
        return _format_error("history response must be [messages, start, end]")

    entries = body[0]
    try:
        if request.include_token:
            messages = []
            for entry in entries:
                if not isinstance(entry, dict) or "message" not in entry:
                    return _format_error("history entry lacks a message field")
                item = dict(entry)
                if request.cipher is not None:
                    item["message"] = request.cipher.decrypt(entry["message"])
                messages.append(item)
        else:
            messages = decrypt_messages(request.cipher, entries)
    except DecryptionError as e:
        return _decryption_error(e)

    return Outcome(PNResult.OK, value=messages)


def parse_here_now(request: Request, body: Any) -> Outcome:
    if not isinstance(body, dict):
        return _format_error("here-now response must be an object")

    occupancy = body.get("occupancy")
    uuids = body.get("uuids")
    if not isinstance(occupancy, int) or isinstance(occupancy, bool) or not isinstance(uuids, list):
        return _format_error("here-now response lacks occupancy/uuids")

    return Outcome(PNResult.OK, value={"occupancy": occupancy, "uuids": uuids})


def parse_time(request: Request, body: Any) -> Outcome:
    if not isinstance(body, list) or len(body) != 1:
        return _format_error("time response must be a one element array")

    timestamp = body[0]
    if not isinstance(timestamp, int) or isinstance(timestamp, bool):
        return _format_error("time response must hold an integer timestamp")
    return Outcome(PNResult.OK, value=timestamp)


class ProtocolHandlers:
    """Routes a decoded body to the parser for the request's operation kind."""

    def __init__(self, multiplexer: SubscribeMultiplexer):
        self.multiplexer = multiplexer

    def parse_subscribe(self, request: Request, body: Any) -> Outcome:
        try:
            batch = self.multiplexer.complete(request.channels, body, request.cipher)
        except DecryptionError as e:
            return _decryption_error(e)
        except ValueError as e:
            return _format_error(str(e))

        return Outcome(PNResult.OK, value=batch.messages, channels=batch.channels)

    def parse(self, request: Request, body: Any) -> Outcome:
        kind = request.kind
        if kind is OperationKind.SUBSCRIBE:
            return self.parse_subscribe(request, body)
        if kind is OperationKind.PUBLISH:
            return parse_publish(request, body)
        if kind is OperationKind.HISTORY:
            return parse_history(request, body)
        if kind is OperationKind.HERE_NOW:
            return parse_here_now(request, body)
        if kind is OperationKind.TIME:
            return parse_time(request, body)
        raise ValueError(f"unknown operation kind: {kind!r}")
