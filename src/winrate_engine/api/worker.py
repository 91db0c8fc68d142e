"""Run engine requests in an isolated thread or process pool."""
from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from typing import Any, Dict, Iterable, List, Mapping

from ..config import get_settings
from ..errors import ValidationError
from . import dispatch, schemas

LOGGER = logging.getLogger(__name__)


def _run_request(message: Dict[str, Any]) -> schemas.EngineResponse:
    # Module-level so process pools can pickle it.
    return dispatch.handle(message)


class EngineWorker:
    """Executor-backed engine: ``submit`` returns a ``Future[EngineResponse]``.

    Every future resolves to exactly one response because the dispatcher
    turns exceptions into failure responses.  There is no cancellation;
    callers simply drop futures whose results they no longer need.
    """

    def __init__(self, kind: str | None = None, max_workers: int | None = None) -> None:
        settings = get_settings()
        self.kind = (kind or settings.worker_kind).lower()
        self.max_workers = max_workers or settings.max_workers
        if self.kind == "thread":
            self._executor: Executor = ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="winrate-engine"
            )
        elif self.kind == "process":
            self._executor = ProcessPoolExecutor(max_workers=self.max_workers)
        else:
            raise ValidationError(f"Unknown worker kind {self.kind!r}", kind=self.kind)
        LOGGER.debug("started %s worker pool with %d workers", self.kind, self.max_workers)

    def submit(self, request: schemas.EngineRequest | Mapping[str, Any]) -> "Future[schemas.EngineResponse]":
        if isinstance(request, schemas.EngineRequest):
            message = request.model_dump()
        else:
            message = dict(request)
        return self._executor.submit(_run_request, message)

    def map(self, requests: Iterable[schemas.EngineRequest | Mapping[str, Any]]) -> List[schemas.EngineResponse]:
        """Submit *requests* and return responses in completion order."""

        futures = [self.submit(r) for r in requests]
        return [f.result() for f in as_completed(futures)]

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "EngineWorker":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()


__all__ = ["EngineWorker"]
