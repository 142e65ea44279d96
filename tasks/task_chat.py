import argparse
import asyncio

from rxpubnub.console import run_chat

from .common import add_key_arguments


def build_parser(subparsers: argparse._SubParsersAction):
    parser = subparsers.add_parser("chat", help="interactive chat on a channel.")
    add_key_arguments(parser)
    parser.add_argument("--channel", type=str, default="hello_world")
    parser.add_argument("--nick", type=str, default=None)
    parser.set_defaults(func=task)

def task(parsed_args: argparse.Namespace):
    try:
        asyncio.run(
            run_chat(
                parsed_args.publish_key,
                parsed_args.subscribe_key,
                parsed_args.channel,
                nick=parsed_args.nick,
                origin=parsed_args.origin,
                secret_key=parsed_args.secret_key,
                cipher_key=parsed_args.cipher_key,
            )
        )
    except KeyboardInterrupt:
        print("\nKeyboard Interrupt.")
