"""QR code rendering for issued tokens."""
import base64
import io

import qrcode

class QRService:
    """Service for QR code operations."""

    @staticmethod
    def render(token: str) -> str:
        """Render a token as a PNG data URL for client display."""
        qr = qrcode.QRCode(
            version=None,  # Auto-determine size
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=8,
            border=4,
        )
        qr.add_data(token)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffered = io.BytesIO()
        img.save(buffered, format="PNG")
        img_str = base64.b64encode(buffered.getvalue()).decode()

        return f"data:image/png;base64,{img_str}"
