from __future__ import annotations

import logging
import re
import typing as tp

from etagproxy._exceptions import ConfigurationError

__all__ = ("IgnoreMatcher", "strip_first_segment")

logger = logging.getLogger("etagproxy.ignore")

_FIRST_SEGMENT = re.compile(r".+?/")


def strip_first_segment(path: str) -> str:
    """
    Replace the shortest non-empty prefix ending with `/` by a single `/`.

    Examples:
        >>> strip_first_segment("/app/static/main.js")
        '/static/main.js'
        >>> strip_first_segment("/plain")
        '/plain'
    """
    return _FIRST_SEGMENT.sub("/", path, count=1)


class IgnoreMatcher:
    """
    Decides whether a request path must bypass the cache.

    :param patterns: Regular expressions, searched anywhere in the normalized path
    :type patterns: tp.Iterable[tp.Union[str, re.Pattern[str]]]
    """

    def __init__(self, patterns: tp.Iterable[tp.Union[str, "re.Pattern[str]"]] = ()) -> None:
        compiled = []
        for pattern in patterns:
            if isinstance(pattern, re.Pattern):
                compiled.append(pattern)
                continue
            try:
                compiled.append(re.compile(pattern))
            except re.error as exc:
                raise ConfigurationError(f"Invalid ignore pattern {pattern!r}: {exc}") from exc
        self._patterns: tp.Tuple["re.Pattern[str]", ...] = tuple(compiled)

    @property
    def patterns(self) -> tp.Tuple["re.Pattern[str]", ...]:
        return self._patterns

    def should_ignore(self, path: str) -> bool:
        normalized = strip_first_segment(path)
        for pattern in self._patterns:
            if pattern.search(normalized):
                logger.info("Ignore %s (matched %s)", path, pattern.pattern)
                return True
        return False
