"""Cache key builders.

Filter-shaped keys are canonicalized (None dropped, keys sorted, compact JSON)
so that equal filter sets collide no matter how they were constructed.
"""
import json
from typing import Any, Optional

from pydantic import BaseModel


def _plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        value = value.model_dump(exclude_none=True)
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def canonical_key(*parts: Any, prefix: str = "search") -> str:
    """Order-independent key for dicts / pydantic models / scalars"""
    payload = [_plain(p) for p in parts]
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return f"{prefix}:{encoded}"


def rating_key(name: Optional[str] = None, producer: Optional[str] = None, url: Optional[str] = None) -> str:
    """"name|producer" lower-cased, or the URL lower-cased"""
    if url:
        return url.strip().lower()
    return f"{(name or '').strip()}|{(producer or '').strip()}".lower()
