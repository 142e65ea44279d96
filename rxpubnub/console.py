"""Interactive chat console on top of two event-driven contexts.

One context keeps long-polling the channel and prints what arrives, the other
publishes every line typed at the prompt. Run it with::

    python -m rxpubnub.console --channel hello_world
"""

import argparse
import asyncio

from prompt_toolkit import PromptSession
from prompt_toolkit.patch_stdout import patch_stdout

from .config import DEFAULT_ORIGIN
from .context import PubNub
from .result import PNResult


async def _receive(pubnub: PubNub, channel: str, done: asyncio.Event) -> None:
    while not done.is_set():
        completion = await pubnub.subscribe(channel)
        if completion.result is not PNResult.OK:
            print(f"[subscribe] {completion.result.description}")
            done.set()
            return
        for _, message in completion.messages():
            if isinstance(message, dict) and "text" in message:
                print(f"<{message.get('from', '?')}> {message['text']}")
            else:
                print(f"<?> {message}")


async def _send(pubnub: PubNub, channel: str, nick: str, done: asyncio.Event) -> None:
    session = PromptSession()
    while not done.is_set():
        try:
            with patch_stdout():
                line = await session.prompt_async(f"{nick}> ")
        except (EOFError, KeyboardInterrupt):
            done.set()
            return

        line = line.strip()
        if not line:
            continue
        completion = await pubnub.publish(channel, {"from": nick, "text": line})
        if not completion.ok:
            print(f"[publish] {completion.result.description}")


async def run_chat(
    publish_key: str,
    subscribe_key: str,
    channel: str,
    *,
    nick: str | None = None,
    origin: str = DEFAULT_ORIGIN,
    secret_key: str | None = None,
    cipher_key: str | None = None,
) -> None:
    """Chat on ``channel`` until the user sends EOF (Ctrl-D) or Ctrl-C."""
    loop = asyncio.get_running_loop()
    options = dict(origin=origin, secret_key=secret_key, cipher_key=cipher_key, loop=loop)

    async with PubNub(publish_key, subscribe_key, **options) as receiver:
        async with PubNub(publish_key, subscribe_key, uuid=receiver.uuid, **options) as sender:
            nick = nick or receiver.uuid[:8]
            done = asyncio.Event()

            # the first subscribe only fetches the current timetoken
            await receiver.subscribe(channel)
            receive_task = asyncio.create_task(_receive(receiver, channel, done))
            try:
                await _send(sender, channel, nick, done)
            finally:
                receive_task.cancel()
                try:
                    await receive_task
                except asyncio.CancelledError:
                    pass


def build_parser(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    parser.add_argument("--publish-key", default="demo")
    parser.add_argument("--subscribe-key", default="demo")
    parser.add_argument("--channel", default="hello_world")
    parser.add_argument("--nick", default=None)
    parser.add_argument("--origin", default=DEFAULT_ORIGIN)
    parser.add_argument("--secret-key", default=None)
    parser.add_argument("--cipher-key", default=None)
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser(argparse.ArgumentParser(description="rxpubnub chat console"))
    args = parser.parse_args(argv)

    try:
        asyncio.run(
            run_chat(
                args.publish_key,
                args.subscribe_key,
                args.channel,
                nick=args.nick,
                origin=args.origin,
                secret_key=args.secret_key,
                cipher_key=args.cipher_key,
            )
        )
    except KeyboardInterrupt:
        print("\nKeyboard Interrupt.")


if __name__ == "__main__":
    main()
