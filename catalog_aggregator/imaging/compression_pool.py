# catalog_aggregator/imaging/compression_pool.py

"""Global bounded pool that compresses every image of a batch."""

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from catalog_aggregator.config.settings import Settings
from catalog_aggregator.imaging.image_codec import ImageCodec

logger = logging.getLogger("catalog_aggregator.compression")


@dataclass(frozen=True)
class ImageJob:
    """One downloaded image tagged with its owning product and slot."""

    product_index: int
    image_index: int
    data: bytes

    @property
    def slot(self) -> tuple[int, int]:
        return (self.product_index, self.image_index)


class CompressionPool:
    """Runs :class:`ImageCodec` over many images with a fixed worker cap.

    The cap is independent of the download concurrency used during
    hydration; all images of a batch share one pool regardless of
    which product they came from.
    """

    def __init__(
        self,
        codec: ImageCodec | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.codec = codec or ImageCodec()
        self.max_workers = (
            max_workers
            if max_workers is not None
            else Settings.MAX_CONCURRENT_COMPRESSION
        )
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix="compress",
        )

    async def compress_all(
        self, jobs: list[ImageJob],
    ) -> dict[tuple[int, int], bytes]:
        """Compress every job and key the output by ``(product, image)``.

        A job whose codec call raises keeps its original bytes.
        """
        if not jobs:
            return {}

        start = time.monotonic()
        logger.info(
            "Compressing %d images (max %d concurrent)",
            len(jobs),
            self.max_workers,
        )

        loop = asyncio.get_running_loop()
        outcomes = await asyncio.gather(
            *(
                loop.run_in_executor(
                    self._executor, self.codec.compress, job.data
                )
                for job in jobs
            ),
            return_exceptions=True,
        )

        results: dict[tuple[int, int], bytes] = {}
        failed = 0
        for job, outcome in zip(jobs, outcomes):
            if isinstance(outcome, BaseException):
                failed += 1
                logger.warning(
                    "Codec error for product #%d image #%d: %s",
                    job.product_index,
                    job.image_index,
                    outcome,
                )
                results[job.slot] = job.data
            else:
                results[job.slot] = outcome

        elapsed = time.monotonic() - start
        rate = len(jobs) / elapsed if elapsed > 0 else float(len(jobs))
        logger.info(
            "Compression finished in %.2fs (%.1f img/s, %d fell back)",
            elapsed,
            rate,
            failed,
        )
        return results

    def close(self) -> None:
        """Stop the worker threads."""
        self._executor.shutdown(wait=True)
