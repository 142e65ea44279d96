import argparse

from . import task_chat, task_info, task_publish, task_subscribe


def main():
    parser = argparse.ArgumentParser(prog="python -m tasks", description="rxpubnub demo tasks")
    subparsers = parser.add_subparsers(required=True)
    for module in (task_publish, task_subscribe, task_info, task_chat):
        module.build_parser(subparsers)

    parsed_args = parser.parse_args()
    parsed_args.func(parsed_args)


if __name__ == "__main__":
    main()
