import base64
import io
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import httpx
from PIL import Image

from imagepipe.models import GeneratedImage

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ["jpg", "jpeg", "png", "gif", "webp"]


def generate_filename(
    prompt: Optional[str] = None, extension: str = "png", index: Optional[int] = None
) -> str:
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    suffix = f"_{index}" if index is not None else ""
    if prompt:
        sane_prompt = "".join(
            c if c.isalnum() or c in (" ", "-") else "_" for c in prompt[:30]
        ).rstrip()
        sane_prompt = sane_prompt.replace(" ", "_")
        return f"{sane_prompt}_{timestamp}{suffix}.{extension}"
    return f"image_{timestamp}{suffix}.{extension}"


def get_image_extension(filename: str) -> str:
    ext = Path(filename).suffix[1:].lower()
    if ext in IMAGE_EXTENSIONS:
        return ext
    return "png"


def numbered_path(path: Path, index: int, total: int) -> Path:
    """``out.png`` -> ``out_2.png`` when more than one image is saved."""
    if total <= 1:
        return path
    return path.with_name(f"{path.stem}_{index}{path.suffix}")


def _save_bytes(image_bytes: bytes, output_path: Path) -> Optional[Path]:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.save(output_path)
    except Exception as e:
        logger.error(f"Failed to process and save image to {output_path}: {e}")
        return None
    logger.info(f"Image saved to {output_path}")
    return output_path


async def save_image_from_url(image_url: str, output_path: Path) -> Optional[Path]:
    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(image_url)
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.error(
            f"HTTP error downloading image {image_url}: {e.response.status_code} - {e.response.text}"
        )
        return None
    except httpx.HTTPError as e:
        logger.error(f"Error downloading image {image_url}: {e}")
        return None
    return _save_bytes(response.content, output_path)


async def save_image_from_b64(b64_json: str, output_path: Path) -> Optional[Path]:
    try:
        image_bytes = base64.b64decode(b64_json)
    except ValueError as e:
        logger.error(f"Error decoding base64 image: {e}")
        return None
    return _save_bytes(image_bytes, output_path)


async def save_generated_image(image: GeneratedImage, output_path: Path) -> Optional[Path]:
    if image.url:
        return await save_image_from_url(image.url, output_path)
    if image.b64_json:
        return await save_image_from_b64(image.b64_json, output_path)
    return None


def to_png_bytes(data: bytes) -> bytes:
    """Return ``data`` as PNG, the only upload format the Images API accepts.

    Raises ``PIL.UnidentifiedImageError`` when ``data`` is not an image.
    """
    with Image.open(io.BytesIO(data)) as img:
        if img.format == "PNG":
            return data
        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        return buffer.getvalue()


def load_png_bytes(path: Path) -> bytes:
    """Read an image for the edit/variation endpoints, converting it to PNG."""
    return to_png_bytes(path.read_bytes())
