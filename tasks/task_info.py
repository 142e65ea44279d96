import argparse
import asyncio

from .common import add_key_arguments, make_pubnub


def build_parser(subparsers: argparse._SubParsersAction):
    parser = subparsers.add_parser("info", help="show service time, presence and recent history of a channel.")
    add_key_arguments(parser)
    parser.add_argument("--channel", type=str, default="hello_world")
    parser.add_argument("--limit", type=int, default=10)
    parser.set_defaults(func=task)

def task(parsed_args: argparse.Namespace):

    async def show_info():
        # one context, one request at a time: each await frees it for the next
        async with make_pubnub(parsed_args, loop=asyncio.get_running_loop()) as pubnub:
            completion = await pubnub.time()
            print(f"time: {completion.value}")

            completion = await pubnub.here_now(parsed_args.channel)
            if completion.ok:
                print(f"here now ({completion.value['occupancy']}): {completion.value['uuids']}")

            completion = await pubnub.history(parsed_args.channel, parsed_args.limit, include_token=True)
            if completion.ok:
                for entry in completion.value:
                    print(f"  {entry.get('timetoken')}: {entry['message']}")

    try:
        asyncio.run(show_info())
    except KeyboardInterrupt:
        print("\nKeyboard Interrupt.")
