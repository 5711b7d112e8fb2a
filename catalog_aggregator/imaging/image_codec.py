# catalog_aggregator/imaging/image_codec.py

"""Resize and re-encode product images to small WebP thumbnails."""

import io
import logging

from PIL import Image

from catalog_aggregator.config.settings import Settings

logger = logging.getLogger("catalog_aggregator.codec")


def encoded_length(image_bytes: bytes) -> int:
    """Length of *image_bytes* once base64-encoded, as the upstream sends it."""
    return 4 * ((len(image_bytes) + 2) // 3)


class ImageCodec:
    """Best-effort image compressor.

    Inputs whose base64 form is below ``min_size_to_compress`` bytes
    are returned untouched.
    Anything the decoder or encoder rejects is also returned untouched;
    :meth:`compress` never raises.
    """

    def __init__(
        self,
        max_dimension: int | None = None,
        quality: int | None = None,
        effort: int | None = None,
        skip_if_small: bool | None = None,
        min_size_to_compress: int | None = None,
    ) -> None:
        settings = Settings()
        self.max_dimension = (
            max_dimension
            if max_dimension is not None
            else settings.MAX_IMAGE_SIZE
        )
        self.quality = (
            quality if quality is not None else settings.IMAGE_QUALITY
        )
        self.effort = (
            effort if effort is not None else settings.COMPRESSION_EFFORT
        )
        self.skip_if_small = (
            skip_if_small
            if skip_if_small is not None
            else settings.SKIP_COMPRESSION_IF_SMALL
        )
        self.min_size_to_compress = (
            min_size_to_compress
            if min_size_to_compress is not None
            else settings.MIN_IMAGE_SIZE_TO_COMPRESS
        )

    def compress(self, image_bytes: bytes) -> bytes:
        """Return a WebP thumbnail of *image_bytes*, or the input on failure."""
        if not image_bytes:
            return image_bytes

        if (
            self.skip_if_small
            and encoded_length(image_bytes) < self.min_size_to_compress
        ):
            return image_bytes

        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                # thumbnail() keeps aspect ratio and never enlarges
                img.thumbnail(
                    (self.max_dimension, self.max_dimension),
                    Image.Resampling.NEAREST,
                )
                if img.mode != "RGB":
                    img = img.convert("RGB")
                out = io.BytesIO()
                img.save(
                    out,
                    format="WEBP",
                    quality=self.quality,
                    method=self.effort,
                )
            return out.getvalue()
        except Exception as exc:
            logger.debug(
                "Compression failed (%d bytes), keeping original: %s",
                len(image_bytes),
                exc,
            )
            return image_bytes
