"""
services/content_loader.py

업로드한 학습 자료 파일 → 평문 텍스트.
  - .pdf       : PyMuPDF 로 페이지별 텍스트 추출
  - .txt / .md : UTF-8 디코딩
그 외 형식은 ValueError.
"""

import logging
import os

import fitz  # PyMuPDF

from config import MAX_PDF_PAGES

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = (".txt", ".md")


def extract_text(filename: str, file_bytes: bytes) -> str:
    if not file_bytes:
        raise ValueError("파일이 비어 있습니다.")

    ext = os.path.splitext(filename or "")[1].lower()
    if ext == ".pdf":
        text = _extract_pdf_text(file_bytes)
    elif ext in TEXT_EXTENSIONS:
        text = file_bytes.decode("utf-8", errors="replace")
    else:
        raise ValueError(f"지원하지 않는 파일 형식입니다 ({ext or '확장자 없음'}). PDF 또는 TXT 파일을 올려 주세요.")

    text = text.strip()
    if not text:
        raise ValueError("파일에서 텍스트를 추출하지 못했습니다.")
    logger.info(f"extract_text: {filename} → {len(text)}자")
    return text


def _extract_pdf_text(file_bytes: bytes) -> str:
    doc = None
    try:
        try:
            doc = fitz.open(stream=file_bytes, filetype="pdf")
        except Exception as e:
            logger.error(f"PDF 열기 실패 - {e}")
            raise ValueError("PDF 파일을 열 수 없습니다.") from e

        if len(doc) > MAX_PDF_PAGES:
            raise ValueError(
                f"PDF 페이지가 너무 많습니다 ({len(doc)}페이지). 최대 {MAX_PDF_PAGES}페이지까지 지원합니다."
            )

        pages = [doc.load_page(i).get_text() for i in range(len(doc))]
        return "\n".join(pages)
    finally:
        if doc is not None:
            doc.close()
