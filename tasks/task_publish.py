import argparse
import json
import time

from .common import add_key_arguments, make_pubnub


def build_parser(subparsers: argparse._SubParsersAction):
    parser = subparsers.add_parser("publish", help="publish messages on a channel.")
    add_key_arguments(parser)
    parser.add_argument("--channel", type=str, default="hello_world")
    parser.add_argument("--message", type=str, default='"Hello, world!"', help="JSON text of the message")
    parser.add_argument("--count", type=int, default=1)
    parser.add_argument("--interval", type=float, default=1.0)
    parser.set_defaults(func=task)

def task(parsed_args: argparse.Namespace):
    message = json.loads(parsed_args.message)

    with make_pubnub(parsed_args) as pubnub:
        try:
            for i in range(parsed_args.count):
                completion = pubnub.publish(parsed_args.channel, message)
                print(f"[{i}] {completion.result.name}: {completion.value}")
                if i + 1 < parsed_args.count:
                    time.sleep(parsed_args.interval)
        except KeyboardInterrupt:
            print("\nKeyboard Interrupt.")
