"""Pillow-backed transformation engine."""

import asyncio
import io
from typing import Any, Dict, Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from .dimensions import fit_inside
from .exceptions import TransformationFailure, errors_as
from .models import AssetStat, CompositeOperation, TransformationPlan, TransformedAsset
from .protocols import ContentSourceProtocol, LoggerProtocol

PIL_FORMATS = {
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "png": "PNG",
    "webp": "WEBP",
    "avif": "AVIF",
}

ALPHA_MODES = ("RGBA", "LA", "PA")

ORIENTATION_TAG = 0x0112


def _has_alpha(image: "Image.Image") -> bool:
    return image.mode in ALPHA_MODES or "transparency" in image.info


class PillowAssetService:
    """Applies a TransformationPlan to stored originals."""

    def __init__(self, source: ContentSourceProtocol, logger: LoggerProtocol):
        self._source = source
        self._logger = logger

    async def get_asset(
        self, file_key: str, plan: TransformationPlan
    ) -> TransformedAsset:
        """Load the original of ``file_key`` and render it in a worker thread."""
        with errors_as(TransformationFailure, f"could not read original of {file_key}"):
            content = await self._source.read_content(file_key)
        self._logger.debug(f"[{file_key}] Rendering {len(content)} bytes")
        return await asyncio.to_thread(self.render, content, plan)

    def render(self, content: bytes, plan: TransformationPlan) -> TransformedAsset:
        """Resize, watermark and re-encode ``content`` according to ``plan``."""
        format_type = PIL_FORMATS.get(plan.output_format.lower())
        if format_type is None:
            raise TransformationFailure(f"Unknown output format: {plan.output_format}")

        try:
            image = Image.open(io.BytesIO(content))
            image.load()
        except (OSError, SyntaxError, Image.DecompressionBombError, UnidentifiedImageError) as e:
            raise TransformationFailure(f"Cannot decode original: {e}") from e

        image = ImageOps.exif_transpose(image)
        exif = self._exif_bytes(image) if plan.keep_metadata else None
        image.info.pop("exif", None)
        keep_alpha = _has_alpha(image) and format_type != "JPEG"

        image = self._fit(image, plan)
        for operation in plan.composites:
            image = self._composite(image, operation)

        image = image.convert("RGBA" if keep_alpha else "RGB")

        save_kwargs: Dict[str, Any] = {"quality": plan.quality}
        if exif:
            save_kwargs["exif"] = exif

        output = io.BytesIO()
        with errors_as(TransformationFailure, f"cannot encode {format_type}"):
            image.save(output, format=format_type, **save_kwargs)
        data = output.getvalue()

        return TransformedAsset(
            content=data,
            stat=AssetStat(width=image.width, height=image.height, size=len(data)),
        )

    @staticmethod
    def _exif_bytes(image: "Image.Image") -> Optional[bytes]:
        # Pixels are upright after exif_transpose, the tag must not rotate them again
        tags = image.getexif()
        tags.pop(ORIENTATION_TAG, None)
        if not tags:
            return None
        return tags.tobytes()

    def _fit(self, image: "Image.Image", plan: TransformationPlan) -> "Image.Image":
        if plan.fit != "inside":
            raise TransformationFailure(f"Unsupported fit: {plan.fit}")

        target = fit_inside(
            image.width,
            image.height,
            plan.max_width,
            plan.max_height,
            enlarge=not plan.without_enlargement,
        )
        if target is None:
            raise TransformationFailure(
                f"Cannot fit {image.width}x{image.height} into "
                f"{plan.max_width}x{plan.max_height}"
            )
        if target == image.size:
            return image
        return image.resize(target, Image.Resampling.LANCZOS)

    def _composite(
        self, image: "Image.Image", operation: CompositeOperation
    ) -> "Image.Image":
        if operation.gravity != "center" or operation.blend != "over":
            raise TransformationFailure(
                f"Unsupported composite {operation.gravity}/{operation.blend}"
            )
        try:
            with Image.open(operation.input_path) as overlay_file:
                overlay = overlay_file.convert("RGBA")
        except (OSError, UnidentifiedImageError) as e:
            raise TransformationFailure(
                f"Cannot load watermark {operation.input_path}: {e}"
            ) from e

        base = image.convert("RGBA")
        left = (base.width - overlay.width) // 2
        top = (base.height - overlay.height) // 2
        base.paste(overlay, (left, top), overlay)
        return base
