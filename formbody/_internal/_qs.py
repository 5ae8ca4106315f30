"""
Nested key-value parser for `application/x-www-form-urlencoded` strings.

Keys may describe a path with brackets, so ``a[b][c]=1`` becomes
``{"a": {"b": {"c": "1"}}}``, ``a[]=1&a[]=2`` becomes ``{"a": ["1", "2"]}``
and ``a[1]=x`` becomes ``{"a": ["x"]}`` as long as the index stays within
``array_limit``. Larger indices are kept as string keys of a dict.

Duplicated plain keys accumulate into lists, mixing a scalar with a nested
value turns the scalar into a ``True`` flag of the dict (``a[b]=1&a=c`` gives
``{"a": {"b": "1", "c": True}}``).

Pairs are tokenized and unescaped by `python_multipart`, see
`formbody._internal._parsers.parse_pairs`.
"""

from __future__ import annotations

import re
from typing import Any

from formbody._internal._parsers import parse_pairs

_BRACKETS = re.compile(r"(\[[^[\]]*\])")
_DOTS = re.compile(r"\.([^.[]+)")


class _Sparse(dict):
    """
    A list built from explicit indices such as ``a[3]``, kept as an
    ``index -> value`` mapping until `compact` turns it into a list.
    """

    __slots__ = ()

    def push(self, item: Any) -> None:
        self[max(self, default=-1) + 1] = item


def _is_shadowing(key: str) -> bool:
    return hasattr(dict, key)


def _is_container(value: Any) -> bool:
    return isinstance(value, (dict, list))


def _is_array(value: Any) -> bool:
    return isinstance(value, (list, _Sparse))


def _array_items(source: list[Any] | _Sparse) -> list[tuple[int, Any]]:
    return list(enumerate(source)) if isinstance(source, list) else sorted(source.items())


def _array_to_dict(source: list[Any] | _Sparse) -> dict[str, Any]:
    return {str(index): item for index, item in _array_items(source)}


def _parse_values(query: str, parameter_limit: int | float) -> dict[str, str | list[str]]:
    values: dict[str, str | list[str]] = {}

    for key, value in parse_pairs(query, max_fields=parameter_limit):
        if key in values:
            existing = values[key]
            values[key] = [*existing, value] if isinstance(existing, list) else [existing, value]
        else:
            values[key] = value
    return values


def _split_key(
    given_key: str, depth: int | float, allow_prototypes: bool, allow_dots: bool
) -> list[str] | None:
    if not given_key:
        return None

    key = _DOTS.sub(r"[\1]", given_key) if allow_dots else given_key

    segment = _BRACKETS.search(key) if depth > 0 else None
    parent = key[: segment.start()] if segment else key

    keys: list[str] = []
    if parent:
        if not allow_prototypes and _is_shadowing(parent):
            return None
        keys.append(parent)

    position = 0
    taken = 0
    while depth > 0:
        segment = _BRACKETS.search(key, position)
        if segment is None or taken >= depth:
            break
        taken += 1
        if not allow_prototypes and _is_shadowing(segment.group(1)[1:-1]):
            return None
        keys.append(segment.group(1))
        position = segment.end()

    # whatever lies beyond the allowed depth is kept as a single literal key
    if segment is not None:
        keys.append(f"[{key[segment.start():]}]")

    return keys


def _build_object(chain: list[str], value: Any, array_limit: int | float) -> Any:
    leaf = value

    for root in reversed(chain):
        if root == "[]":
            if isinstance(leaf, _Sparse):
                obj: Any = _Sparse(leaf)
            else:
                obj = list(leaf) if isinstance(leaf, list) else [leaf]
        else:
            clean_root = root[1:-1] if root.startswith("[") and root.endswith("]") else root
            if (
                root != clean_root
                and clean_root.isascii()
                and clean_root.isdigit()
                and str(int(clean_root)) == clean_root
                and int(clean_root) <= array_limit
            ):
                obj = _Sparse({int(clean_root): leaf})
            else:
                obj = {clean_root: leaf}
        leaf = obj

    return leaf


def _merge_arrays(
    target: list[Any] | _Sparse, source: list[Any] | _Sparse, allow_prototypes: bool
) -> Any:
    if isinstance(target, list) and isinstance(source, list):
        for index, item in enumerate(source):
            if index < len(target):
                target_item = target[index]
                if _is_container(target_item) and _is_container(item):
                    target[index] = merge(target_item, item, allow_prototypes)
                else:
                    target.append(item)
            else:
                target.append(item)
        return target

    merged = target if isinstance(target, _Sparse) else _Sparse(enumerate(target))
    for index, item in _array_items(source):
        if index in merged:
            target_item = merged[index]
            if _is_container(target_item) and _is_container(item):
                merged[index] = merge(target_item, item, allow_prototypes)
            else:
                merged.push(item)
        else:
            merged[index] = item
    return merged


def merge(target: Any, source: Any, allow_prototypes: bool = False) -> Any:
    """
    Merge ``source`` into ``target``, returning the merged value.

    Containers in ``target`` are updated in place.
    """
    if source is None or source == "":
        return target

    if not _is_container(source):
        if isinstance(target, _Sparse):
            target.push(source)
        elif isinstance(target, list):
            target.append(source)
        elif isinstance(target, dict):
            if allow_prototypes or not _is_shadowing(source):
                target[source] = True
        else:
            return [target, source]
        return target

    if not _is_container(target):
        if isinstance(source, _Sparse):
            return _Sparse({0: target, **{index + 1: item for index, item in source.items()}})
        return [target, *source] if isinstance(source, list) else [target, source]

    if _is_array(target) and _is_array(source):
        return _merge_arrays(target, source, allow_prototypes)

    merge_target = _array_to_dict(target) if _is_array(target) else target
    items = _array_to_dict(source).items() if _is_array(source) else source.items()

    for key, value in items:
        if key in merge_target:
            merge_target[key] = merge(merge_target[key], value, allow_prototypes)
        else:
            merge_target[key] = value
    return merge_target


def compact(value: dict[str, Any]) -> dict[str, Any]:
    """
    Turn every index mapping in ``value`` into a list, in place.
    """
    stack: list[Any] = [value]

    while stack:
        node = stack.pop()
        keys = range(len(node)) if isinstance(node, list) else list(node)
        for key in keys:
            child = node[key]
            if isinstance(child, _Sparse):
                child = node[key] = [item for _, item in sorted(child.items())]
            if _is_container(child):
                stack.append(child)

    return value


def parse(
    query: str,
    *,
    depth: int | float = 5,
    array_limit: int | float = 20,
    parameter_limit: int | float = 1000,
    allow_prototypes: bool = False,
    allow_dots: bool = False,
) -> dict[str, Any]:
    """
    Parse ``query`` into nested dicts and lists.

    Args:
        query: The urlencoded string, without a leading ``?``.
        depth: How many bracket segments of a key are turned into nesting.
            The remainder of a deeper key is kept as one literal key.
        array_limit: Highest explicit index that still produces a list.
        parameter_limit: Pairs beyond this count are ignored.
        allow_prototypes: Accept keys that shadow ``dict`` attributes such
            as ``items`` or ``keys``.
        allow_dots: Also read ``a.b`` as ``a[b]``.
    """
    if not query:
        return {}

    obj: dict[str, Any] = {}
    for key, value in _parse_values(query, parameter_limit).items():
        chain = _split_key(key, depth, allow_prototypes, allow_dots)
        if chain is None:
            continue
        obj = merge(obj, _build_object(chain, value, array_limit), allow_prototypes)

    return compact(obj)
