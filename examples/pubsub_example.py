import asyncio
import time

from reactivex import operators as ops

from rxpubnub import Callbacks, PubNub, RxSubscriber, untag

# this example shows the two context modes and the reactive subscriber against
# the public demo keys. Run `receiver()` in one terminal and `sender()` in another.


class PrintCallbacks(Callbacks):
    def on_publish(self, pubnub, completion):
        print(f"publish -> {completion.result.name} {completion.value}")


# blocking mode: every call returns its completion
def sender(channel: str = "hello_world"):
    with PubNub("demo", "demo", callbacks=PrintCallbacks()) as pubnub:
        i = 0
        try:
            while True:
                pubnub.publish(channel, {"text": f"Hello {i}"})
                time.sleep(1)
                i += 1
        except KeyboardInterrupt:
            print("\nKeyboard Interrupt.")


# reactive: a background subscribe loop feeding an Observable
def receiver(channel: str = "hello_world"):
    subscriber = RxSubscriber(PubNub("demo", "demo"), channel)
    subscriber.pipe(
        untag(),
        ops.map(lambda message: message.get("text") if isinstance(message, dict) else message),
    ).subscribe(print, on_error=print)

    try:
        while True:
            time.sleep(0.5)
    except KeyboardInterrupt:
        print("\nKeyboard Interrupt.")
    finally:
        subscriber.on_completed()


# event-driven mode: every call returns a future
def poll(channel: str = "hello_world", rounds: int = 5):
    async def main():
        async with PubNub("demo", "demo", loop=asyncio.get_running_loop()) as pubnub:
            await pubnub.subscribe(channel)  # fetches the starting timetoken
            for _ in range(rounds):
                completion = await pubnub.subscribe(channel)
                for source, message in completion.messages():
                    print(f"{source}: {message}")

    asyncio.run(main())


if __name__ == "__main__":
    receiver()
