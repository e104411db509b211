from __future__ import annotations

import typing as tp

T = tp.TypeVar("T")

TRUTHY_VALUES = ("1", "true", "yes", "on")


def filter_mapping(mapping: tp.Mapping[str, T], keys_to_exclude: tp.Iterable[str]) -> tp.Dict[str, T]:
    """
        Filter out specified keys from a string-keyed mapping using case-insensitive comparison.

        Args:
            mapping: The input mapping with string keys to filter.
            keys_to_exclude: An iterable of string keys to exclude (case-insensitive).

        Returns:
            A new dictionary with the specified keys excluded.

        Example:
    ```python
            original = {'a': 1, 'B': 2, 'c': 3}
            filtered = filter_mapping(original, ['b'])
            # filtered will be {'a': 1, 'c': 3}
    ```
    """
    exclude_set = {k.lower() for k in keys_to_exclude}
    return {k: v for k, v in mapping.items() if k.lower() not in exclude_set}


def is_truthy(value: str | None) -> bool:
    """
    Interpret a header or config flag value.

    Examples:
        >>> is_truthy("Yes")
        True
        >>> is_truthy("0")
        False
        >>> is_truthy(None)
        False
    """
    if value is None:
        return False
    return value.strip().lower() in TRUTHY_VALUES


def build_url(protocol: str, host: str, port: int | None, location: str) -> str:
    """
    Build an absolute upstream URL from its parts.

    Examples:
        >>> build_url("https", "example.com", None, "/a?b=1")
        'https://example.com/a?b=1'
        >>> build_url("http", "backend", 8080, "/")
        'http://backend:8080/'
    """
    netloc = host if port is None else f"{host}:{port}"
    if not location.startswith("/"):
        location = "/" + location
    return f"{protocol}://{netloc}{location}"
