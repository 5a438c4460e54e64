#!/usr/bin/env python3
"""
JSON Safety Utilities - Turn engine results into JSON-serialisable data.

Dataclasses become camelCase dictionaries, enums become their values and
numpy scalars, timestamps and paths become plain Python values. Non-finite
floats degrade to 0.0 so a transport never sees NaN.
"""

import dataclasses
import json
import math
from enum import Enum
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd


def camel_case(name: str) -> str:
    """
    Convert a snake_case attribute name to camelCase.

    Args:
        name: Attribute name such as ``score_by_window``

    Returns:
        camelCase name such as ``scoreByWindow``
    """
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def to_json_safe(obj: Any) -> Any:
    """
    Recursively convert an object tree into JSON-safe primitives.

    Dictionary keys are kept as given (they are data identifiers such as
    player keys or window keys); only dataclass field names are camelCased.
    """
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            camel_case(f.name): to_json_safe(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {str(k): to_json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [to_json_safe(x) for x in obj]
    if isinstance(obj, Path):
        return obj.as_posix()
    if isinstance(obj, pd.Timestamp):
        return obj.isoformat()
    if isinstance(obj, np.generic):
        obj = obj.item()
    if isinstance(obj, float) and not math.isfinite(obj):
        return 0.0
    return obj


def safe_json_dumps(data: Any, **kwargs) -> str:
    """
    Serialise data to a JSON string after making it JSON-safe.

    Args:
        data: Any engine object or plain structure
        **kwargs: Additional arguments passed to json.dumps()
    """
    return json.dumps(to_json_safe(data), **kwargs)
