#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Type hints used internally by this package"""

from __future__ import annotations

from typing import (
    TYPE_CHECKING,
    Any,
    AsyncContextManager,
    AsyncIterable,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    MutableMapping,
    Optional,
    Sequence,
    Set,
    Tuple,
    Type,
    TypeVar,
    Union,
    cast,
  )

from types import TracebackType
from typing_extensions import Self, TypeAlias

HostAndPort: TypeAlias = Tuple[str, int]
"""An IPv4 (host, port) tuple as used by socket and asyncio datagram APIs."""

Jsonable: TypeAlias = Union[str, int, float, bool, None, Dict[str, Any], List[Any]]
"""A value that can be serialized to JSON."""

JsonableDict: TypeAlias = Dict[str, Jsonable]
"""A JSON object."""

JsonableTypes = (str, int, float, bool, dict, list)
"""Types that can be checked with isinstance() for JSON-ability (None handled separately)."""
