# commander/utils/common.py
"""
Small shared helpers: JSON encoding tolerant of enums, datetimes and dataclasses,
and a helper for running blocking callables on the loop's thread executor.
"""

from __future__ import annotations

import enum
import json
import asyncio
import datetime
import functools
import dataclasses
from typing import Any, Callable, Optional, TypeVar

T = TypeVar("T")


class EnhancedJSONEncoder(json.JSONEncoder):
    """JSON encoder that understands enums, datetimes, sets and dataclasses."""
    def default(self, obj):
        if isinstance(obj, enum.Enum):
            return obj.value
        if isinstance(obj, (datetime.datetime, datetime.date)):
            return obj.isoformat()
        if isinstance(obj, (set, frozenset)):
            return list(obj)
        if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            return dataclasses.asdict(obj)
        return super().default(obj)


def json_dumps(obj: Any, indent: Optional[int] = None) -> str:
    return json.dumps(obj, cls=EnhancedJSONEncoder, indent=indent)


async def run_in_executor(func: Callable[..., T], *args, **kwargs) -> T:
    """Run a blocking call on the default executor so the event loop keeps serving."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))
