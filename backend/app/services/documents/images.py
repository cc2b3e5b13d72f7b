"""
Office raster images (signature and seal) referenced from templates by the
$firma and $sello markers.

The template engine rewrites those markers into image_marker() placeholders,
which are delimited by NUL characters. Substituted values are stripped of NUL,
so only the template itself can place an image.
"""
import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Dict, Optional

from reportlab.lib.utils import ImageReader

from ...models.db_models import OfficeDB
from ..errors import RenderError

logger = logging.getLogger(__name__)

SIGNATURE = "firma"
SEAL = "sello"
IMAGE_MARKERS = (SIGNATURE, SEAL)
MARKER_DELIMITER = "\x00"

# Images are stored at scan resolution and drawn at 35% of their pixel size.
IMAGE_SCALE = 0.35


@dataclass(frozen=True)
class OfficeImage:
    name: str
    data: bytes
    width: float
    height: float

    @classmethod
    def from_bytes(cls, name: str, data: bytes, scale: float = IMAGE_SCALE) -> "OfficeImage":
        try:
            pixel_width, pixel_height = ImageReader(BytesIO(data)).getSize()
        except Exception as e:
            raise RenderError(f"Office image '{name}' could not be decoded: {e}") from e
        return cls(name=name, data=data, width=pixel_width * scale, height=pixel_height * scale)

    def reader(self) -> ImageReader:
        return ImageReader(BytesIO(self.data))


def load_office_images(office: Optional[OfficeDB]) -> Dict[str, OfficeImage]:
    """Decode the office's signature/seal. Missing images are simply absent."""
    images: Dict[str, OfficeImage] = {}
    if office is None:
        return images
    for name, data in ((SIGNATURE, office.signature_image), (SEAL, office.seal_image)):
        if data:
            images[name] = OfficeImage.from_bytes(name, data)
    logger.debug(f"Loaded office images for {office.id}: {sorted(images)}")
    return images


def image_marker(name: str) -> str:
    """Placeholder the layout engine replaces with the named office image."""
    return f"{MARKER_DELIMITER}{name}{MARKER_DELIMITER}"
