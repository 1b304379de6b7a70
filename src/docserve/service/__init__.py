"""Serving boundary for documents and assets."""

from docserve.service.documents import DocumentService, DocumentView, guess_asset_content_type

__all__ = ["DocumentService", "DocumentView", "guess_asset_content_type"]
