from __future__ import annotations

import typing as tp

import pytest

from etagproxy import FetchResult, Request


class RecordingSender:
    """Upstream stand-in returning queued results and recording every request."""

    def __init__(self) -> None:
        self.requests: tp.List[Request] = []
        self.mocked_results: tp.List[FetchResult] = []

    def add_responses(self, results: tp.List[FetchResult]) -> None:
        self.mocked_results.extend(results)

    async def __call__(self, request: Request) -> FetchResult:
        self.requests.append(request)
        return self.mocked_results.pop(0)


@pytest.fixture()
def sender() -> RecordingSender:
    return RecordingSender()
