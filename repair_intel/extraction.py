import io
from typing import List

from pdf2image import convert_from_bytes
from pypdf import PdfReader
import pytesseract

from .errors import ValidationFailure

# Below this many native characters we assume a scanned report and try OCR.
OCR_MIN_NATIVE_CHARS = 100


class PdfTextExtractor:
    def __init__(self, ocr_enabled: bool = True, ocr_dpi: int = 300, min_native_chars: int = OCR_MIN_NATIVE_CHARS):
        self.ocr_enabled = ocr_enabled
        self.ocr_dpi = ocr_dpi
        self.min_native_chars = min_native_chars

    def extract_text(self, file_bytes: bytes) -> str:
        print("DEBUG[extract_text]: starting, bytes:", len(file_bytes or b""))
        native = ""
        native_error = None

        try:
            native = self._native_text(file_bytes)
            print("DEBUG[extract_text]: native extracted chars:", len(native))
            if len(native) > self.min_native_chars or (native and not self.ocr_enabled):
                return native
        except Exception as e:
            native_error = e
            print("DEBUG[extract_text]: native text error:", e)

        if not self.ocr_enabled:
            if native_error is not None:
                raise ValidationFailure(f"Could not extract text from PDF: {native_error}") from native_error
            return native

        try:
            print("DEBUG[extract_text]: falling back to OCR")
            ocr = self._ocr_text(file_bytes)
            print("DEBUG[extract_text]: OCR extracted chars:", len(ocr))
            return ocr if len(ocr) > len(native) else native
        except Exception as e:
            print("DEBUG[extract_text]: OCR failure:", e)
            if native:
                return native
            raise ValidationFailure(f"Could not extract text from PDF: {native_error or e}") from e

    def _native_text(self, file_bytes: bytes) -> str:
        reader = PdfReader(io.BytesIO(file_bytes))
        pages_text: List[str] = [(page.extract_text() or "").strip() for page in reader.pages]
        return "\n\n".join(pages_text).strip()

    def _ocr_text(self, file_bytes: bytes) -> str:
        images = convert_from_bytes(file_bytes, fmt="png", dpi=self.ocr_dpi)
        ocr_pages = [pytesseract.image_to_string(img) for img in images]
        return "\n\n".join(p.strip() for p in ocr_pages).strip()
