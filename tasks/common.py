import argparse

from rxpubnub import DEFAULT_ORIGIN, PubNub


def add_key_arguments(parser: argparse.ArgumentParser):
    parser.add_argument("--publish-key", type=str, default="demo")
    parser.add_argument("--subscribe-key", type=str, default="demo")
    parser.add_argument("--origin", type=str, default=DEFAULT_ORIGIN)
    parser.add_argument("--secret-key", type=str, default=None)
    parser.add_argument("--cipher-key", type=str, default=None)


def make_pubnub(parsed_args: argparse.Namespace, **kwargs) -> PubNub:
    return PubNub(
        parsed_args.publish_key,
        parsed_args.subscribe_key,
        origin=parsed_args.origin,
        secret_key=parsed_args.secret_key,
        cipher_key=parsed_args.cipher_key,
        **kwargs,
    )
