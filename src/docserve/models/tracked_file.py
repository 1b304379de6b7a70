"""
Data model for a single tracked document.

A TrackedFile is the in-memory record of one monitored document: where it
lives, when it was last observed to change, a digest of its content and the
rendered HTML cached against that digest.
"""

import hashlib
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


def compute_digest(content: str) -> str:
    """Return the SHA-256 hex digest of document content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class TrackedFile(BaseModel):
    """
    Last-known state of one document in the index.

    The relative path is the stable key; everything else is refreshed in
    place when the file is confirmed to have changed.
    """

    relative_path: str = Field(..., min_length=1, description="Root-relative, forward-slash key")
    path: Path = Field(..., description="Absolute location on disk")
    modified_ns: int = Field(..., ge=0, description="Last observed modification time in nanoseconds")
    content_digest: str = Field(..., min_length=64, max_length=64, description="SHA-256 of the content")
    content: str = Field(default="", description="Raw markdown content")
    html: str = Field(default="", description="Rendered output cached for content_digest")

    @field_validator("relative_path")
    @classmethod
    def validate_relative_path(cls, v):
        """Normalize separators and reject absolute keys."""
        v = v.replace("\\", "/")
        if v.startswith("/"):
            raise ValueError("relative_path must be relative to the root")
        return v

    @field_validator("path")
    @classmethod
    def validate_path(cls, v):
        """Ensure the stored location is absolute."""
        if not Path(v).is_absolute():
            raise ValueError("path must be an absolute path")
        return v

    @computed_field
    @property
    def name(self) -> str:
        """File name without the directory part."""
        return self.relative_path.rsplit("/", 1)[-1]

    def apply_content(self, content: str, html: str, modified_ns: int) -> bool:
        """
        Replace content after a confirmed modification.

        The timestamp only ever moves forward.

        Returns:
            True if the content digest changed
        """
        digest = compute_digest(content)
        changed = digest != self.content_digest
        self.content = content
        self.content_digest = digest
        self.html = html
        self.modified_ns = max(self.modified_ns, modified_ns)
        return changed

    def __str__(self) -> str:
        return f"TrackedFile({self.relative_path}, {self.content_digest[:8]})"

    model_config = ConfigDict(validate_assignment=True)
