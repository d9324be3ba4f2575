"""
QR code rendering for otpauth:// provisioning URIs.

Best-effort helper: if the image cannot be produced the caller gets the
raw URI back, which authenticator apps also accept as manual input.
"""
import base64
import io
import logging

import qrcode
from qrcode.exceptions import DataOverflowError

logger = logging.getLogger(__name__)

QR_ERROR_CORRECTION = qrcode.constants.ERROR_CORRECT_M
QR_BOX_SIZE = 8
QR_BORDER = 4


def generate_qr_code(uri: str, *, box_size: int = QR_BOX_SIZE, border: int = QR_BORDER) -> bytes:
    """
    Render the provisioning URI as a PNG QR code.

    The symbol version is chosen to fit the URI.

    Args:
        uri: otpauth:// provisioning URI.
        box_size: Pixels per QR module.
        border: Quiet-zone width in modules.

    Returns:
        PNG image bytes.

    Raises:
        ValueError: If ``uri`` is empty.
        DataOverflowError: If the URI does not fit in any QR version.
    """
    if not uri:
        raise ValueError("Cannot render an empty provisioning URI")

    qr = qrcode.QRCode(error_correction=QR_ERROR_CORRECTION, box_size=box_size, border=border)
    qr.add_data(uri)
    qr.make(fit=True)
    logger.debug(f"Rendering provisioning QR code at version {qr.version}")

    buffer = io.BytesIO()
    qr.make_image().save(buffer, format="PNG")
    return buffer.getvalue()


def generate_qr_code_data_uri(uri: str) -> str:
    """
    Generate a base64 PNG data URI for embedding in HTML.

    Falls back to returning ``uri`` unchanged if rendering fails.

    Args:
        uri: otpauth:// provisioning URI.

    Returns:
        "data:image/png;base64,..." string, or the raw URI on failure.
    """
    try:
        png_bytes = generate_qr_code(uri)
    except (DataOverflowError, ValueError, OSError) as e:
        logger.warning(f"QR code rendering failed, returning raw URI: {e}")
        return uri

    b64 = base64.b64encode(png_bytes).decode("ascii")
    return f"data:image/png;base64,{b64}"
