"""Canonical encoding of job argument lists.

Arguments are logically a mapping from integer position to value. Keys are
sorted ascending before any comparison or storage, so two argument sets with
the same key -> value pairs encode to the same string regardless of how they
were built. That canonical string is what identity lookups match against.
"""

import json
from collections.abc import Mapping, Sequence
from typing import Any

JobArgs = dict[int, Any]


def normalize_args(args: Mapping[int, Any] | Sequence[Any] | None) -> JobArgs:
    """Return args as a position -> value dict with keys in ascending order.

    Sequences are keyed by index. Mapping keys must be integers (or integer
    strings, which is how JSON round-trips them).
    """
    if args is None:
        return {}
    if isinstance(args, Mapping):
        items = [(_coerce_key(k), v) for k, v in args.items()]
    elif isinstance(args, (str, bytes)):
        raise TypeError("Job args must be a sequence or mapping, not a string")
    else:
        items = list(enumerate(args))
    return dict(sorted(items, key=lambda item: item[0]))


def _coerce_key(key: Any) -> int:
    if isinstance(key, bool):
        raise ValueError(f"Invalid argument position: {key!r}")
    if isinstance(key, int):
        return key
    if isinstance(key, str) and key.lstrip("-").isdigit():
        return int(key)
    raise ValueError(f"Invalid argument position: {key!r}")


def encode_args(args: Mapping[int, Any] | Sequence[Any] | None) -> str:
    """Encode args as compact JSON `[[position, value], ...]` in key order."""
    normalized = normalize_args(args)
    pairs = [[key, value] for key, value in normalized.items()]
    return json.dumps(pairs, separators=(",", ":"), sort_keys=True)


def decode_args(encoded: str | None) -> JobArgs:
    """Inverse of encode_args; re-sorts in case the store reordered anything."""
    if not encoded:
        return {}
    data = json.loads(encoded)
    if isinstance(data, dict):
        return normalize_args(data)
    if not isinstance(data, list):
        raise ValueError(f"Malformed job args: {encoded!r}")
    return normalize_args({_coerce_key(key): value for key, value in data})
