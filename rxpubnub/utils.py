"""Utility helpers used across ``rxpubnub`` modules."""

import traceback
from typing import Callable, TypeVar, Generic

from reactivex import operators as ops, Observable

TagT = TypeVar("TagT")
InnerDataT = TypeVar("InnerDataT")
class TaggedData(Generic[TagT, InnerDataT]):
    """
    A message paired with the channel it arrived on.

    Attributes:
        tag (TagT): The originating channel.
        data (InnerDataT): The decoded message.
    """

    def __init__(self, tag: TagT, data: InnerDataT):
        self.tag = tag
        self.data = data

    def __repr__(self) -> str:
        return f"(tag={self.tag}, {repr(self.data)})"

    def __str__(self) -> str:
        return f"(tag={self.tag}, {str(self.data)})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TaggedData):
            return NotImplemented
        return self.tag == other.tag and self.data == other.data


def untag() -> Callable[[Observable[TaggedData[object, InnerDataT]]], Observable[InnerDataT]]:
    """Return an operator that drops the channel and keeps the message."""

    return ops.map(lambda x: x.data)  # type: ignore


def tag_filter(tag: TagT) -> Callable[[Observable[InnerDataT]], Observable[TaggedData[TagT, InnerDataT]]]:
    """Return an operator that keeps only messages from channel ``tag``."""

    return ops.filter(lambda x: isinstance(x, TaggedData) and x.tag == tag)


def get_short_error_info(e: BaseException) -> str:
    """
    Get a short error information from an exception.

    Args:
        e (BaseException): The exception to get the error information from.

    Returns:
        str: A short error information.
    """
    return f"{type(e).__name__}: {str(e)}"


# the function to get the full error information from an exception.
def get_full_error_info(e: BaseException) -> str:
    """
    Get the full error information from an exception.

    Args:
        e (BaseException): The exception to get the error information from.

    Returns:
        str: The full error information.
    """
    return "".join(traceback.format_exception(type(e), e, e.__traceback__))
