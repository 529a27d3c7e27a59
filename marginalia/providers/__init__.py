"""
Source providers: adapters that read external formats for the sectioners.
"""

from .pdf import PdfExtractor, PypdfExtractor, get_pdf_extractor

__all__ = ["PdfExtractor", "PypdfExtractor", "get_pdf_extractor"]
