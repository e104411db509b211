from __future__ import annotations

import re
from typing import Any, Iterable, Iterator, List, Mapping, MutableMapping, Optional, Tuple, Union

from etagproxy._utils import filter_mapping

__all__ = ("Headers", "is_weak_etag", "is_storable_etag")

_WEAK_ETAG = re.compile(r"^w", re.IGNORECASE)


class Headers(MutableMapping[str, str]):
    """
    Case-insensitive, multi-valued HTTP header mapping.

    Names are stored lower-cased. Assigning to an existing name appends a
    value, reading joins all values with ", ". Use `get_list` or
    `multi_items` when the individual values matter (e.g. `set-cookie`).
    """

    def __init__(self, headers: Optional[Mapping[str, Union[str, List[str]]]] = None) -> None:
        headers = headers or {}
        self._headers = {k.lower(): ([v] if isinstance(v, str) else v[:]) for k, v in headers.items()}

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, str]]) -> "Headers":
        headers = cls()
        for key, value in pairs:
            headers[key] = value
        return headers

    def get_list(self, key: str) -> Optional[List[str]]:
        return self._headers.get(key.lower(), None)

    def multi_items(self) -> List[Tuple[str, str]]:
        return [(key, value) for key, values in self._headers.items() for value in values]

    def copy(self) -> "Headers":
        return Headers(self._headers)

    def without(self, names: Iterable[str]) -> "Headers":
        return Headers(filter_mapping(self._headers, names))

    def __getitem__(self, key: str) -> str:
        return ", ".join(self._headers[key.lower()])

    def __setitem__(self, key: str, value: str) -> None:
        self._headers.setdefault(key.lower(), []).append(value)

    def __delitem__(self, key: str) -> None:
        del self._headers[key.lower()]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._headers

    def __iter__(self) -> Iterator[str]:
        return iter(self._headers)

    def __len__(self) -> int:
        return len(self._headers)

    def __repr__(self) -> str:
        return repr(self._headers)

    def __str__(self) -> str:
        return str(self._headers)

    def __eq__(self, other_headers: Any) -> bool:
        return isinstance(other_headers, Headers) and self._headers == other_headers._headers


def is_weak_etag(etag: str) -> bool:
    """
    Weak validators start with `W/`; any leading `w` is treated as weak.

    Examples:
        >>> is_weak_etag('W/"abc"')
        True
        >>> is_weak_etag('w/"abc"')
        True
        >>> is_weak_etag('"abc"')
        False
    """
    return _WEAK_ETAG.match(etag) is not None


def is_storable_etag(etag: str) -> bool:
    return bool(etag) and not is_weak_etag(etag)
