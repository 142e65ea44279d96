"""Subscribe multiplexer: timetoken bookkeeping per channel set.

Any number of channels is merged into one long-poll request keyed by the
sorted channel set. The service answers with the messages published since
the supplied timetoken plus a new timetoken, which must be fed verbatim into
the next subscribe on the same channel set.
"""

import threading
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from .crypto import PubNubCipher

INITIAL_TIMETOKEN = "0"

ChannelSet = tuple[str, ...]


def channel_set(channels: str | Iterable[str]) -> ChannelSet:
    """Normalise one channel name or a collection of names into a channel set."""
    if isinstance(channels, str):
        channels = (channels,)

    names = set()
    for name in channels:
        if not isinstance(name, str) or not name:
            raise ValueError(f"channel names must be non-empty strings, got {name!r}")
        if "," in name:
            raise ValueError(f"channel name must not contain ',': {name!r}")
        names.add(name)

    if not names:
        raise ValueError("at least one channel is required")

    return tuple(sorted(names))


class SubscriptionState:
    """Continuation timetoken per distinct channel set.

    Unseen channel sets start at ``"0"``, which asks the service for the
    current timetoken and an empty message list.
    """

    def __init__(self):
        self._tokens: dict[ChannelSet, str] = {}
        self._lock = threading.Lock()

    def token(self, channels: ChannelSet) -> str:
        with self._lock:
            return self._tokens.get(channels, INITIAL_TIMETOKEN)

    def update(self, channels: ChannelSet, timetoken: str) -> None:
        with self._lock:
            self._tokens[channels] = timetoken

    def reset(self, channels: ChannelSet | None = None) -> None:
        """Forget the token of one channel set, or of all of them."""
        with self._lock:
            if channels is None:
                self._tokens.clear()
            else:
                self._tokens.pop(channels, None)

    def __contains__(self, channels: ChannelSet) -> bool:
        with self._lock:
            return channels in self._tokens


@dataclass(frozen=True)
class SubscribeBatch:
    """Messages returned by one long-poll, each paired with its channel."""

    messages: list[Any]
    channels: tuple[str, ...]
    timetoken: str


def parse_subscribe(body: Any, channels: ChannelSet) -> SubscribeBatch:
    """Validate a subscribe response and attribute each message to a channel.

    Accepted shapes are ``[messages, timetoken]`` and, when the service
    multiplexes several channels, ``[messages, timetoken, "chA,chB,..."]``.

    Raises:
        ValueError: the response does not have one of the shapes above.
    """
    if not isinstance(body, list) or len(body) not in (2, 3):
        raise ValueError("subscribe response must be a 2 or 3 element array")

    messages, timetoken = body[0], body[1]
    if not isinstance(messages, list):
        raise ValueError("subscribe messages must be an array")
    if isinstance(timetoken, int) and not isinstance(timetoken, bool):
        timetoken = str(timetoken)
    if not isinstance(timetoken, str) or not timetoken:
        raise ValueError("subscribe timetoken must be a non-empty string")

    if len(body) == 3 and body[2] != "":
        if not isinstance(body[2], str):
            raise ValueError("subscribe channel list must be a string")
        origin = tuple(body[2].split(","))
        if len(origin) != len(messages):
            raise ValueError(
                f"subscribe channel list has {len(origin)} entries for {len(messages)} messages"
            )
    elif len(channels) == 1 or not messages:
        origin = (channels[0],) * len(messages)
    else:
        raise ValueError("multi-channel subscribe response lacks channel attribution")

    return SubscribeBatch(messages=messages, channels=origin, timetoken=timetoken)


def decrypt_messages(cipher: PubNubCipher | None, messages: list[Any]) -> list[Any]:
    """Decrypt every message when a cipher is configured.

    Raises:
        DecryptionError: any message fails to decrypt.
    """
    if cipher is None:
        return messages
    return [cipher.decrypt(message) for message in messages]


class SubscribeMultiplexer:
    """Tracks subscription state and turns responses into deliveries."""

    def __init__(self, state: SubscriptionState | None = None):
        self.state = state if state is not None else SubscriptionState()

    def timetoken(self, channels: ChannelSet) -> str:
        return self.state.token(channels)

    def complete(self, channels: ChannelSet, body: Any, cipher: PubNubCipher | None) -> SubscribeBatch:
        """Advance the stored timetoken and return the decoded batch.

        The token moves forward before decryption so that an undecryptable
        message is not replayed by the next subscribe.

        Raises:
            ValueError: malformed response; the token is left untouched.
            DecryptionError: a message could not be decrypted.
        """
        batch = parse_subscribe(body, channels)
        self.state.update(channels, batch.timetoken)

        messages = decrypt_messages(cipher, batch.messages)
        return SubscribeBatch(messages=messages, channels=batch.channels, timetoken=batch.timetoken)
