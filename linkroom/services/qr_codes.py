# linkroom/services/qr_codes.py

import base64
import io
import logging

import qrcode

from linkroom.core.errors import QrGenerationFailed

logger = logging.getLogger(__name__)

DARK = "#1a1a2e"
LIGHT = "#ffffff"
TARGET_WIDTH = 256
MARGIN = 2


def qr_data_uri(data: str) -> str:
    """Render `data` as a PNG QR code and return it as a data: URI."""
    try:
        qr = qrcode.QRCode(border=MARGIN)
        qr.add_data(data)
        qr.make(fit=True)
        # box size chosen so the image is close to TARGET_WIDTH pixels
        qr.box_size = max(1, TARGET_WIDTH // (qr.modules_count + 2 * MARGIN))
        image = qr.make_image(fill_color=DARK, back_color=LIGHT)

        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
    except Exception as e:
        logger.error("QR generation failed for %s: %s", data, e)
        raise QrGenerationFailed() from e

    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"
