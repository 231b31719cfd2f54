"""Input handling utilities for preparing images for OCR."""
from __future__ import annotations

import io
from pathlib import Path
from typing import List, Optional, Union

from PIL import Image

ImageSource = Union[Image.Image, bytes, bytearray, str, Path]

_PDF_MAGIC = b"%PDF"


class BasicInputHandler:
    """Turn an image-like input into a list of page images.

    * A :class:`PIL.Image.Image` is passed through as a single page.
    * ``bytes`` are sniffed: PDF payloads are expanded page by page, anything
      else is opened with Pillow.
    * A path ending in ``.pdf`` is expanded; other paths are opened with
      Pillow.

    PDF expansion first tries ``pdf2image`` (Poppler). If that dependency is
    missing or fails, it falls back to ``PyMuPDF`` so environments without
    system packages remain usable.
    """

    def __init__(self, poppler_path: Optional[str] = None, default_pdf_dpi: int = 200) -> None:
        self.poppler_path = poppler_path
        self.default_pdf_dpi = default_pdf_dpi

    def _render_pdf_with_pdf2image(self, data: bytes) -> List[Image.Image]:
        from pdf2image import convert_from_bytes

        kwargs = {"dpi": self.default_pdf_dpi}
        if self.poppler_path:
            kwargs["poppler_path"] = self.poppler_path
        return convert_from_bytes(data, **kwargs)

    def _render_pdf_with_pymupdf(self, data: bytes) -> List[Image.Image]:
        import importlib
        import importlib.util

        if importlib.util.find_spec("fitz") is None:  # pragma: no cover - optional dependency
            raise RuntimeError("PyMuPDF (fitz) is required to process PDF documents")

        fitz = importlib.import_module("fitz")
        scale = self.default_pdf_dpi / 72.0
        matrix = fitz.Matrix(scale, scale)
        images: List[Image.Image] = []
        with fitz.open(stream=data, filetype="pdf") as doc:  # type: ignore[attr-defined]
            for page_index in range(doc.page_count):
                page = doc.load_page(page_index)
                pix = page.get_pixmap(matrix=matrix, alpha=False)
                mode = "RGB"
                if pix.n == 1:
                    mode = "L"
                elif pix.n >= 4:
                    mode = "RGBA"
                images.append(Image.frombytes(mode, (pix.width, pix.height), pix.samples))
        return images

    def _expand_pdf(self, data: bytes) -> List[Image.Image]:
        errors: list[str] = []
        try:
            return self._render_pdf_with_pdf2image(data)
        except Exception as exc:
            errors.append(f"pdf2image: {exc}")

        try:
            return self._render_pdf_with_pymupdf(data)
        except Exception as exc:
            errors.append(f"pymupdf: {exc}")
            raise RuntimeError(
                "Install pdf2image with Poppler or PyMuPDF (fitz) to process PDF documents; "
                f"attempts failed ({'; '.join(errors)})"
            ) from exc

    def load(self, source: ImageSource) -> List[Image.Image]:
        if isinstance(source, Image.Image):
            return [source]

        if isinstance(source, (bytes, bytearray)):
            data = bytes(source)
            if not data:
                raise ValueError("Empty image payload")
            if data.startswith(_PDF_MAGIC):
                return self._expand_pdf(data)
            return [Image.open(io.BytesIO(data))]

        if isinstance(source, (str, Path)):
            path = Path(source)
            if path.suffix.lower() == ".pdf":
                return self._expand_pdf(path.read_bytes())
            return [Image.open(path.as_posix())]

        raise TypeError(f"Unsupported image input: {type(source).__name__}")


__all__ = ["BasicInputHandler", "ImageSource"]
