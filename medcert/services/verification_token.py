"""Verification URL and QR code rendering.

The QR code is a convenience rendering of the verification URL; the URL
(and the certificate number inside it) is what the ledger trusts.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from io import BytesIO
from urllib.parse import quote

import qrcode
from PIL import Image
from qrcode.exceptions import DataOverflowError
from qrcode.image.pil import PilImage

from medcert.services.errors import EncodingFailure

logger = logging.getLogger(__name__)

VERIFY_PATH = "/certificates/verify/"


@dataclass(frozen=True, slots=True)
class VerificationToken:
    url: str
    png: bytes

    @property
    def data_url(self) -> str:
        return "data:image/png;base64," + base64.b64encode(self.png).decode("ascii")


def verification_url(certificate_number: str, base_url: str) -> str:
    return f"{base_url.rstrip('/')}{VERIFY_PATH}{quote(certificate_number, safe='')}"


class VerificationTokenEncoder:
    """Render verification URLs as square PNG QR codes.

    Error correction level H (~30% of the symbol recoverable) so printed
    certificates still scan after folding or smudging.
    """

    def __init__(self, size_px: int = 200, border: int = 1) -> None:
        self.size_px = size_px
        self.border = border

    def encode(self, certificate_number: str, base_url: str) -> VerificationToken:
        url = verification_url(certificate_number, base_url)
        try:
            png = self._render(url)
        except (DataOverflowError, ValueError) as e:
            logger.error("QR rendering failed for number=%s: %s", certificate_number, e)
            raise EncodingFailure(f"cannot render verification code: {e}") from e
        return VerificationToken(url=url, png=png)

    def _render(self, url: str) -> bytes:
        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_H,
            box_size=10,
            border=self.border,
        )
        qr.add_data(url)
        qr.make(fit=True)

        image = qr.make_image(
            image_factory=PilImage, fill_color="black", back_color="white"
        ).get_image()
        image = image.convert("L").resize(
            (self.size_px, self.size_px), Image.Resampling.NEAREST
        )

        buf = BytesIO()
        image.save(buf, format="PNG")
        return buf.getvalue()
