import cv2
import numpy as np
import logging
import re
from typing import Optional, Tuple

from imagerelay.core.errors import ImageDecodeError, TextRenderError

logger = logging.getLogger(__name__)

HEX_COLOR_PATTERN = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

def parse_hex_color(value: str) -> Tuple[int, int, int]:
    """
    Parse '#RRGGBB' or '#RGB' (leading '#' optional) into an (R, G, B) tuple.
    """
    match = HEX_COLOR_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Invalid hex color: {value!r}")
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)

def guess_image_type(image_bytes: bytes) -> Optional[str]:
    if image_bytes[:2] == b"\xff\xd8":
        return "image/jpeg"
    if image_bytes[:4] == b"\x89PNG":
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    if image_bytes[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    return None

def contrasting_outline(rgb: Tuple[int, int, int]) -> Tuple[int, int, int]:
    """
    Black outline for light fills, white outline for dark fills (ITU-R 601 luma).
    """
    r, g, b = rgb
    luma = 0.299 * r + 0.587 * g + 0.114 * b
    return (0, 0, 0) if luma >= 128 else (255, 255, 255)

class ImageProcessor:
    FONT_FACE = cv2.FONT_HERSHEY_SIMPLEX
    LINE_SPACING = 1.3

    def __init__(self, jpeg_quality: int = 90, emoji_size: int = 128):
        self.jpeg_quality = jpeg_quality
        self.emoji_size = emoji_size

    def overlay_text(
        self,
        image_bytes: bytes,
        text: str,
        x: int,
        y: int,
        font_size: int,
        font_color: str,
    ) -> bytes:
        """
        Draw outlined text onto the image and return JPEG bytes.

        (x, y) is the top-left corner of the first line. Each glyph is drawn
        twice: a thick stroke in the contrasting color, then the fill on top.
        """
        img = self._decode_bgr(image_bytes)

        fill_rgb = parse_hex_color(font_color)
        outline_rgb = contrasting_outline(fill_rgb)
        # OpenCV wants BGR
        fill = fill_rgb[::-1]
        outline = outline_rgb[::-1]

        thickness = max(1, round(font_size / 15))
        stroke = thickness + 2 * max(1, round(font_size / 20))

        try:
            scale = cv2.getFontScaleFromHeight(self.FONT_FACE, font_size, thickness)
            cursor_y = y
            for line in text.split("\n"):
                (_, line_h), _ = cv2.getTextSize(line or " ", self.FONT_FACE, scale, thickness)
                # putText anchors at the baseline; shift down so y is the top edge
                origin = (x, cursor_y + line_h)
                if line:
                    cv2.putText(img, line, origin, self.FONT_FACE, scale, outline, stroke, cv2.LINE_AA)
                    cv2.putText(img, line, origin, self.FONT_FACE, scale, fill, thickness, cv2.LINE_AA)
                cursor_y += int(round(font_size * self.LINE_SPACING))
        except cv2.error as e:
            logger.error(f"Failed to render text onto image: {e}")
            raise TextRenderError("Failed to render text onto image") from e

        is_success, buffer = cv2.imencode(".jpg", img, [cv2.IMWRITE_JPEG_QUALITY, self.jpeg_quality])
        if not is_success:
            raise TextRenderError("Failed to encode image to JPEG.")
        return buffer.tobytes()

    def prepare_emoji(self, image_bytes: bytes) -> bytes:
        """
        Fit the image into a square transparent canvas and return PNG bytes.
        """
        img = self._decode_bgra(image_bytes)
        target = self.emoji_size
        h, w = img.shape[:2]

        scale = min(target / w, target / h)
        new_w, new_h = max(1, int(w * scale)), max(1, int(h * scale))
        interpolation = cv2.INTER_AREA if scale < 1 else cv2.INTER_LINEAR
        resized_img = cv2.resize(img, (new_w, new_h), interpolation=interpolation)

        canvas = np.zeros((target, target, 4), dtype=np.uint8)
        x_offset = (target - new_w) // 2
        y_offset = (target - new_h) // 2
        canvas[y_offset:y_offset + new_h, x_offset:x_offset + new_w] = resized_img

        is_success, buffer = cv2.imencode(".png", canvas)
        if not is_success:
            raise ImageDecodeError("Failed to encode emoji to PNG.")
        return buffer.tobytes()

    def _decode(self, image_bytes: bytes) -> np.ndarray:
        if not image_bytes:
            raise ImageDecodeError("Image data is empty.")
        nparr = np.frombuffer(image_bytes, np.uint8)
        img = cv2.imdecode(nparr, cv2.IMREAD_UNCHANGED)
        if img is None:
            raise ImageDecodeError("Could not decode image bytes.")
        if img.dtype != np.uint8:
            # 16-bit PNG/TIFF
            img = cv2.convertScaleAbs(img, alpha=255.0 / 65535.0)
        return img

    def _decode_bgr(self, image_bytes: bytes) -> np.ndarray:
        """
        Decode to 3-channel BGR, flattening any alpha channel onto black.
        """
        img = self._decode(image_bytes)
        if img.ndim == 2:
            return cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
        if img.shape[2] == 4:
            bgr = img[:, :, :3].astype(np.float32)
            alpha = img[:, :, 3:4].astype(np.float32) / 255.0
            return (bgr * alpha).round().astype(np.uint8)
        return img.copy()

    def _decode_bgra(self, image_bytes: bytes) -> np.ndarray:
        img = self._decode(image_bytes)
        if img.ndim == 2:
            return cv2.cvtColor(img, cv2.COLOR_GRAY2BGRA)
        if img.shape[2] == 3:
            return cv2.cvtColor(img, cv2.COLOR_BGR2BGRA)
        return img
