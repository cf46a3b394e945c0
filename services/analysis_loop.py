"""Sequential, rate-limited batch classification.

Images are classified strictly one at a time. `iter_batch_analysis` yields an
`AnalysisProgress` event after each image; `analyze_batch` drains it into a
result mapping and forwards events to an optional callback.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional, Protocol, Sequence

from models.session_models import ClassificationResult

LOGGER = logging.getLogger(__name__)


class Classifier(Protocol):
    async def classify(self, image_bytes: bytes) -> ClassificationResult: ...


@dataclass
class BatchImage:
    """One image queued for analysis; bytes may be loaded lazily by id."""

    id: str
    image_bytes: Optional[bytes] = None


@dataclass
class AnalysisProgress:
    current: int
    total: int
    image_id: str
    result: ClassificationResult


ProgressCallback = Callable[[int, int, str, ClassificationResult], None]
Sleep = Callable[[float], Awaitable[None]]
Loader = Callable[[str], Awaitable[Optional[bytes]]]


class CancellationToken:
    """Cooperative stop flag checked between classification calls."""

    def __init__(self) -> None:
        self._requested = False

    def request_stop(self) -> None:
        self._requested = True

    @property
    def stop_requested(self) -> bool:
        return self._requested


async def iter_batch_analysis(
    images: Sequence[BatchImage],
    classifier: Classifier,
    rate_seconds: float = 1.0,
    cancel_token: Optional[CancellationToken] = None,
    sleep: Sleep = asyncio.sleep,
    loader: Optional[Loader] = None,
) -> AsyncIterator[AnalysisProgress]:
    """Classify `images` in order, yielding one progress event per image.

    Waits `rate_seconds` before every call except the first. The stop flag is
    checked at the top of each iteration; remaining images are left untouched.
    A classifier or loader exception is recorded as a failed result for that
    image only. `loader` fetches bytes for images queued without them.
    """
    total = len(images)
    for index, image in enumerate(images):
        if cancel_token is not None and cancel_token.stop_requested:
            LOGGER.info("Batch analysis stopped after %d/%d images", index, total)
            return
        if index > 0 and rate_seconds > 0:
            await sleep(rate_seconds)

        try:
            image_bytes = image.image_bytes
            if image_bytes is None and loader is not None:
                image_bytes = await loader(image.id)
            if not image_bytes:
                raise LookupError(f"Image {image.id} not found")
            result = await classifier.classify(image_bytes)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            LOGGER.error("Classification of %s raised: %s", image.id, exc)
            result = ClassificationResult.failure(str(exc) or "Unknown error during analysis")

        yield AnalysisProgress(current=index + 1, total=total, image_id=image.id, result=result)


async def analyze_batch(
    images: Sequence[BatchImage],
    classifier: Classifier,
    rate_seconds: float = 1.0,
    on_progress: Optional[ProgressCallback] = None,
    cancel_token: Optional[CancellationToken] = None,
    sleep: Sleep = asyncio.sleep,
    loader: Optional[Loader] = None,
) -> Dict[str, ClassificationResult]:
    """Classify `images` sequentially and return `{image_id: result}` for those processed."""
    results: Dict[str, ClassificationResult] = {}
    async for event in iter_batch_analysis(images, classifier, rate_seconds, cancel_token, sleep, loader):
        results[event.image_id] = event.result
        if on_progress is not None:
            on_progress(event.current, event.total, event.image_id, event.result)
    return results
