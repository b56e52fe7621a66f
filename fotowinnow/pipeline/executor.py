"""Run the CPU-bound pipeline off the request thread / event loop.

Pillow releases the GIL during decode, resample and encode, so a thread
pool gives real parallelism for independent images. Each call is bounded
by a timeout; on expiry the caller gets ProcessingTimeout and the result,
when it eventually arrives, is discarded.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Optional

from fotowinnow.errors import ProcessingTimeout
from fotowinnow.models import ProcessedImagePair
from fotowinnow.pipeline.process import ImagePipeline, SpecInput

logger = logging.getLogger(__name__)


class PipelineExecutor:
    """Thread pool wrapper around an ImagePipeline."""

    def __init__(
        self,
        pipeline: ImagePipeline,
        max_workers: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.pipeline = pipeline
        settings = pipeline.settings
        self.timeout = timeout if timeout is not None else settings.processing_timeout_seconds
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers or settings.processing_workers,
            thread_name_prefix="fotowinnow-pipeline",
        )

    def submit(
        self,
        source_bytes: bytes,
        spec: SpecInput,
        content_type: Optional[str] = None,
    ) -> "Future[ProcessedImagePair]":
        return self._pool.submit(self.pipeline.process, source_bytes, spec, content_type)

    def run(
        self,
        source_bytes: bytes,
        spec: SpecInput,
        content_type: Optional[str] = None,
    ) -> ProcessedImagePair:
        """Process one image, blocking until done or timed out.

        Raises:
            ProcessingTimeout: If the timeout elapses first.
            ProcessingError: Anything the pipeline itself raises.
        """
        future = self.submit(source_bytes, spec, content_type)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeout as e:
            future.cancel()
            logger.error("Image processing exceeded %.0fs timeout", self.timeout)
            raise ProcessingTimeout(f"processing exceeded {self.timeout:g}s") from e

    async def run_async(
        self,
        source_bytes: bytes,
        spec: SpecInput,
        content_type: Optional[str] = None,
    ) -> ProcessedImagePair:
        """Event-loop friendly variant of ``run``."""
        future = asyncio.wrap_future(self.submit(source_bytes, spec, content_type))
        try:
            return await asyncio.wait_for(future, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error("Image processing exceeded %.0fs timeout", self.timeout)
            raise ProcessingTimeout(f"processing exceeded {self.timeout:g}s") from e

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    def __enter__(self) -> "PipelineExecutor":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()
