import argparse
import time

from rxpubnub import RxSubscriber

from .common import add_key_arguments, make_pubnub


def build_parser(subparsers: argparse._SubParsersAction):
    parser = subparsers.add_parser("subscribe", help="print every message arriving on the channels.")
    add_key_arguments(parser)
    parser.add_argument("--channels", type=str, nargs="+", default=["hello_world"])
    parser.set_defaults(func=task)

def task(parsed_args: argparse.Namespace):
    subscriber = RxSubscriber(make_pubnub(parsed_args), parsed_args.channels)
    subscriber.subscribe(print, on_error=print)

    try:
        while True:
            time.sleep(0.5)
    except KeyboardInterrupt:
        print("\nKeyboard Interrupt.")
    finally:
        subscriber.on_completed()
