"""Custom JSON encoder for handling special types"""
import json
import logging
from decimal import Decimal
from datetime import datetime, date, time
from typing import Any
from uuid import UUID

import numpy as np

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class CustomJSONEncoder(json.JSONEncoder):
    """
    Custom JSON encoder that handles:
    - Decimal objects (from database queries)
    - datetime/date/time objects
    - UUIDs, numpy scalars and pydantic models
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return float(obj)
        elif isinstance(obj, (datetime, date, time)):
            return obj.isoformat()
        elif isinstance(obj, UUID):
            return str(obj)
        elif isinstance(obj, np.generic):
            return obj.item()
        elif isinstance(obj, BaseModel):
            return obj.model_dump()
        elif isinstance(obj, (set, frozenset)):
            return sorted(obj, key=str)
        else:
            # Fall back to default behavior (will raise TypeError)
            return super().default(obj)


def json_dumps(obj: Any, **kwargs) -> str:
    """
    JSON dumps with custom encoder for handling Decimal and other special types.

    Args:
        obj: Object to serialize
        **kwargs: Additional arguments to pass to json.dumps

    Returns:
        JSON string
    """
    return json.dumps(obj, cls=CustomJSONEncoder, **kwargs)


def to_json_safe(obj: Any) -> Any:
    """
    Recursively convert database values into JSON-safe scalars.

    Decimals become floats, temporal values become ISO-8601 strings and
    UUIDs become strings. Containers are rebuilt, never modified in place.

    Args:
        obj: Data structure to convert (dict, list, or primitive)

    Returns:
        Converted copy of the data structure
    """
    if isinstance(obj, Decimal):
        return float(obj)
    elif isinstance(obj, (datetime, date, time)):
        return obj.isoformat()
    elif isinstance(obj, UUID):
        return str(obj)
    elif isinstance(obj, np.generic):
        return obj.item()
    elif isinstance(obj, (bytes, memoryview)):
        return bytes(obj).hex()
    elif isinstance(obj, dict):
        return {key: to_json_safe(value) for key, value in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [to_json_safe(item) for item in obj]
    else:
        return obj
