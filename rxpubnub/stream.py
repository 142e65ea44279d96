"""Continuous subscription exposed as a ReactiveX subject.

:class:`RxSubscriber` keeps one blocking-mode :class:`~rxpubnub.context.PubNub`
long-polling a channel set on a background thread and emits every message as
``TaggedData(channel, message)``. Values pushed into the subject are
published through an optional second context.
"""

import threading
from collections.abc import Iterable
from typing import Any

from reactivex import Subject

from .context import PubNub
from .mechanism import ContextClosedError, PubNubException
from .result import PNResult
from .subscribe import channel_set
from .utils import TaggedData, get_full_error_info, get_short_error_info


class RxSubscriber(Subject):
    """A ReactiveX subject fed by a PubNub subscribe loop.

    As an *Observable* it emits :class:`~rxpubnub.utils.TaggedData` items whose
    tag is the originating channel. As an *Observer* it publishes what it
    receives: a ``TaggedData`` goes to its tag's channel, any other value to
    the first subscribed channel.

    Parameters
    ----------
    pubnub : PubNub
        Blocking-mode context dedicated to the subscribe loop. The subscriber
        takes ownership and closes it on completion.
    channels : str | Iterable[str]
        Channel or channels to follow.
    publisher : PubNub | None
        Blocking-mode context used for publishing. Values pushed into the
        subject are dropped with a warning when it is omitted.
    name : str | None
        Log source name, defaults to ``"RxSubscriber:<channels>"``.

    Raises
    ------
    PubNubException
        Forwarded through ``on_error`` when a subscribe completes with an
        error the context's retry policy did not absorb.
    """

    def __init__(
        self,
        pubnub: PubNub,
        channels: str | Iterable[str],
        publisher: PubNub | None = None,
        name: str | None = None,
    ):
        super().__init__()
        if pubnub.event_driven or (publisher is not None and publisher.event_driven):
            raise ValueError("RxSubscriber requires blocking-mode contexts")

        self.pubnub = pubnub
        self.publisher = publisher
        self.channels = channel_set(channels)
        self._name = name if name else f"RxSubscriber:{','.join(self.channels)}"
        self._logger = pubnub.logger.with_context(
            source=self._name, operation="subscribe", channels=",".join(self.channels)
        )

        self._shutdown_requested = False
        self._publish_lock = threading.Lock()
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    # ---------------- observable side ---------------- #
    def _run(self) -> None:
        self._logger.info("Subscribe loop started.")
        try:
            self._loop()
        except Exception as e:
            self._logger.error(f"Subscribe loop crashed:\n{get_full_error_info(e)}")
            super().on_error(PubNubException(e, source=self._name, note="subscribe loop"))
        else:
            self._logger.info("Subscribe loop stopped.")

    def _loop(self) -> None:
        while not self._shutdown_requested:
            try:
                completion = self.pubnub.subscribe_multi(self.channels)
            except ContextClosedError:
                return

            if completion.result is PNResult.CANCELLED or self._shutdown_requested:
                return

            if completion.result is not PNResult.OK:
                error = PubNubException(
                    RuntimeError(completion.result.description),
                    source=self._name,
                    note=f"subscribe {completion.result.name}",
                )
                self._logger.error(f"Subscribe loop stopped: {error}")
                super().on_error(error)
                return

            for channel, message in completion.messages():
                super().on_next(TaggedData(channel, message))

    # ---------------- observer side ---------------- #
    def on_next(self, value: Any) -> None:
        """Publish ``value`` through the publisher context."""
        if self._shutdown_requested:
            return
        if self.publisher is None:
            self._logger.warning("No publisher context, message dropped.")
            return

        if isinstance(value, TaggedData):
            channel, message = value.tag, value.data
        else:
            channel, message = self.channels[0], value

        # one publish at a time; a concurrent call would only get OCCUPIED
        with self._publish_lock:
            completion = self.publisher.publish(channel, message)
        if not completion.ok:
            self._logger.warning(
                f"Publish to {channel} failed: {completion.result.description}"
            )

    def on_error(self, error: Exception) -> None:
        super().on_error(PubNubException(error, source=self._name, note="Error"))

    def on_completed(self) -> None:
        """Stop the subscribe loop, close the contexts and complete."""
        if self._shutdown_requested:
            return
        self._shutdown_requested = True
        self._logger.info("Closing...")
        try:
            self.pubnub.close()
            if self.publisher is not None:
                self.publisher.close()
            if self._thread is not threading.current_thread():
                self._thread.join(timeout=3.0)
            self._logger.info("Closed.")
            super().on_completed()
        except Exception as e:
            super().on_error(
                PubNubException(e, source=self._name, note=f"on_completed: {get_short_error_info(e)}")
            )
