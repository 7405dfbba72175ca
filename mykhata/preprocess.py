"""Image cleanup ahead of text recognition, using OpenCV."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def preprocess_image(
    image_bytes: bytes,
    *,
    max_dimension: int = 1200,
    sharpen_sigma: float = 1.0,
    gamma: float = 1.2,
    jpeg_quality: int = 95,
) -> bytes:
    """Return a grayscale, contrast-stretched, sharpened JPEG of the image.

    The longest side is bounded to ``max_dimension`` (never upscaled).
    If anything goes wrong the original bytes are returned unchanged, so
    preprocessing can never fail a scan.
    """
    try:
        return _transform(
            image_bytes,
            max_dimension=max_dimension,
            sharpen_sigma=sharpen_sigma,
            gamma=gamma,
            jpeg_quality=jpeg_quality,
        )
    except Exception:
        logger.warning(
            "Image preprocessing failed, using original image", exc_info=True
        )
        return image_bytes


def _transform(
    image_bytes: bytes,
    *,
    max_dimension: int,
    sharpen_sigma: float,
    gamma: float,
    jpeg_quality: int,
) -> bytes:
    try:
        import cv2
        import numpy as np
    except ImportError:
        raise ImportError(
            "opencv-python is required: pip install opencv-python"
        ) from None

    buf = np.frombuffer(image_bytes, dtype=np.uint8)
    image = cv2.imdecode(buf, cv2.IMREAD_COLOR)
    if image is None:
        raise ValueError("Failed to decode image")

    height, width = image.shape[:2]
    longest = max(height, width)
    if longest > max_dimension:
        scale = max_dimension / longest
        size = (max(1, round(width * scale)), max(1, round(height * scale)))
        image = cv2.resize(image, size, interpolation=cv2.INTER_AREA)

    gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    gray = cv2.normalize(gray, None, 0, 255, cv2.NORM_MINMAX)

    # Unsharp mask
    blurred = cv2.GaussianBlur(gray, (0, 0), sharpen_sigma)
    gray = cv2.addWeighted(gray, 1.5, blurred, -0.5, 0)

    table = np.array(
        [((i / 255.0) ** (1.0 / gamma)) * 255 for i in range(256)]
    ).clip(0, 255).astype(np.uint8)
    gray = cv2.LUT(gray, table)

    ok, encoded = cv2.imencode(
        ".jpg", gray, [cv2.IMWRITE_JPEG_QUALITY, jpeg_quality]
    )
    if not ok:
        raise ValueError("Failed to encode image")
    return encoded.tobytes()
