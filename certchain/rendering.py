"""
Генерация файлов сертификата: PDF, PNG изображение и QR-код.

Функции рендеринга зависят только от полей сертификата и не меняют его.
"""

import io
import logging
from typing import List, Tuple

import qrcode
from PIL import Image, ImageDraw, ImageFont
from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4, landscape
from reportlab.pdfgen import canvas

from .exceptions import RenderError
from .models import Certificate, CertificateTemplate

logger = logging.getLogger(__name__)

TITLE = "CERTIFICATE OF COMPLETION"

# Цвета шаблонов: фон, заголовок, основной текст, акцент, подписи
PALETTES = {
    CertificateTemplate.MODERN: {
        "background": "#1a1a2e",
        "title": "#00d4ff",
        "text": "#e0e0e0",
        "accent": "#ffffff",
        "muted": "#808080",
    },
    CertificateTemplate.CLASSIC: {
        "background": "#ffffff",
        "title": "#000000",
        "text": "#000000",
        "accent": "#333333",
        "muted": "#666666",
    },
}


def certificate_lines(certificate: Certificate) -> List[Tuple[str, str]]:
    """
    Основные строки сертификата с ролью оформления.

    Returns:
        List[Tuple[str, str]]: Пары (роль, текст)
    """
    lines = [
        ("title", TITLE),
        ("accent", certificate.institute_name or certificate.issuer_organization),
        ("text", "This is to certify that"),
        ("name", certificate.student_name),
        ("text", "has successfully completed the course"),
        ("accent", certificate.course_name),
        ("muted", f"Completion Date: {certificate.formatted_completion_date}"),
    ]
    if certificate.grade:
        lines.append(("muted", f"Grade: {certificate.grade}"))
    if certificate.duration:
        lines.append(("muted", f"Duration: {certificate.duration}"))
    return lines


def footer_lines(certificate: Certificate) -> Tuple[List[str], List[str]]:
    """Строки нижнего колонтитула: слева данные проверки, справа выдавший."""
    left = [
        f"Certificate ID: {certificate.certificate_id}",
        f"Blockchain Hash: {certificate.certificate_hash[:20]}...",
    ]
    right = [
        f"Issued by: {certificate.issuer_name}",
        f"Organization: {certificate.issuer_organization}",
    ]
    return left, right


class CertificateRenderer:
    """Генератор PDF и PNG представлений сертификата."""

    PDF_FONT_SIZES = {"title": 26, "accent": 20, "text": 16, "name": 26, "muted": 13}
    PNG_FONT_SIZES = {"title": 40, "accent": 30, "text": 24, "name": 36, "muted": 20}
    IMAGE_SIZE = (1200, 800)

    def render_pdf(self, certificate: Certificate) -> bytes:
        """
        Генерирует PDF сертификата (A4, альбомная ориентация).

        Args:
            certificate: Сертификат

        Returns:
            bytes: Содержимое PDF

        Raises:
            RenderError: При ошибке генерации
        """
        palette = PALETTES[certificate.template]
        width, height = landscape(A4)
        buffer = io.BytesIO()

        try:
            pdf = canvas.Canvas(buffer, pagesize=(width, height))
            pdf.setTitle(f"Certificate {certificate.certificate_id}")

            if certificate.template == CertificateTemplate.MODERN:
                pdf.setFillColor(HexColor(palette["background"]))
                pdf.rect(0, 0, width, height, stroke=0, fill=1)
            else:
                pdf.setStrokeColor(HexColor("#000000"))
                pdf.setLineWidth(3)
                pdf.rect(20, 20, width - 40, height - 40, stroke=1, fill=0)
                pdf.setStrokeColor(HexColor("#666666"))
                pdf.setLineWidth(1)
                pdf.rect(40, 40, width - 80, height - 80, stroke=1, fill=0)

            y = height - 90
            for role, text in certificate_lines(certificate):
                color = palette["title"] if role in ("title", "name") else palette[role]
                font = "Helvetica-Bold" if role in ("title", "name", "accent") else "Helvetica"
                pdf.setFont(font, self.PDF_FONT_SIZES[role])
                pdf.setFillColor(HexColor(color))
                pdf.drawCentredString(width / 2, y, text)
                y -= self.PDF_FONT_SIZES[role] + 18

            left, right = footer_lines(certificate)
            pdf.setFont("Helvetica", 11)
            pdf.setFillColor(HexColor(palette["muted"]))
            for offset, text in enumerate(left):
                pdf.drawString(60, 80 - offset * 18, text)
            for offset, text in enumerate(right):
                pdf.drawRightString(width - 60, 80 - offset * 18, text)

            pdf.showPage()
            pdf.save()

        except Exception as e:
            logger.error(f"Ошибка генерации PDF для {certificate.certificate_id}: {e}")
            raise RenderError(f"Failed to render PDF: {e}")

        return buffer.getvalue()

    def render_png(self, certificate: Certificate) -> bytes:
        """
        Генерирует PNG изображение сертификата 1200x800.

        Raises:
            RenderError: При ошибке генерации
        """
        palette = PALETTES[certificate.template]
        width, height = self.IMAGE_SIZE

        try:
            image = Image.new("RGB", self.IMAGE_SIZE, palette["background"])
            draw = ImageDraw.Draw(image)

            if certificate.template == CertificateTemplate.CLASSIC:
                draw.rectangle([20, 20, width - 20, height - 20], outline="#000000", width=8)
                draw.rectangle([60, 60, width - 60, height - 60], outline="#666666", width=2)

            y = 90
            for role, text in certificate_lines(certificate):
                font = self._load_font(self.PNG_FONT_SIZES[role])
                color = palette["title"] if role in ("title", "name") else palette[role]
                left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
                draw.text(((width - (right - left)) / 2, y), text, fill=color, font=font)
                y += (bottom - top) + 30

            footer_font = self._load_font(16)
            left_lines, right_lines = footer_lines(certificate)
            for offset, text in enumerate(left_lines):
                draw.text((80, height - 110 + offset * 24), text, fill=palette["muted"], font=footer_font)
            for offset, text in enumerate(right_lines):
                text_width = draw.textbbox((0, 0), text, font=footer_font)[2]
                draw.text((width - 80 - text_width, height - 110 + offset * 24), text,
                          fill=palette["muted"], font=footer_font)

            buffer = io.BytesIO()
            image.save(buffer, format="PNG")

        except Exception as e:
            logger.error(f"Ошибка генерации изображения для {certificate.certificate_id}: {e}")
            raise RenderError(f"Failed to render image: {e}")

        return buffer.getvalue()

    @staticmethod
    def _load_font(size: int):
        try:
            return ImageFont.truetype("DejaVuSans.ttf", size)
        except OSError:
            # Шрифт не установлен в системе
            return ImageFont.load_default()


class QRCodeGenerator:
    """Генератор QR-кодов со ссылкой на проверку сертификата."""

    def __init__(self, box_size: int = 10, border: int = 2):
        self.box_size = box_size
        self.border = border

    def render(self, verification_url: str) -> bytes:
        """
        Генерирует PNG с QR-кодом.

        Args:
            verification_url: Ссылка на страницу проверки

        Returns:
            bytes: Содержимое PNG
        """
        if not verification_url:
            raise RenderError("Verification URL is required for QR code")

        try:
            qr = qrcode.QRCode(
                version=None,
                error_correction=qrcode.constants.ERROR_CORRECT_M,
                box_size=self.box_size,
                border=self.border,
            )
            qr.add_data(verification_url)
            qr.make(fit=True)

            img = qr.make_image(fill_color="black", back_color="white")
            buffer = io.BytesIO()
            img.save(buffer)

        except Exception as e:
            logger.error(f"Ошибка генерации QR-кода: {e}")
            raise RenderError(f"Failed to render QR code: {e}")

        return buffer.getvalue()
