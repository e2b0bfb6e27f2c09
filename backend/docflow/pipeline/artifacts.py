"""
Output artifact contract.

Every step that produces a result writes one JSON document to
``{output_container}/{folder}/{original_filename}{suffix}`` with the shape::

    {
        "document_id": "...",        # slug of original_filename
        "reference_id": "...",
        "processor": "...",
        "main_content": "...",       # text the next step consumes
        "message": ...,              # raw capability response
        "original_filename": "...",
        "origin_file": "...",        # path the step actually read
        "folderName": "..."
    }

Keys are deterministic so a replayed message overwrites, never duplicates.
"""

from __future__ import annotations

import re
import uuid
from posixpath import basename
from typing import Any

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_\-=]")
_DASH_RUNS = re.compile(r"-{2,}")


def slugify_document_id(name: str | None) -> str:
    """
    Turn a filename into a document id.

    Letters, digits, ``_``, ``-`` and ``=`` are kept; everything else becomes
    ``-``; runs of ``-`` collapse and edge dashes are trimmed.  An empty
    result falls back to a random hex id.  Applying it twice changes nothing.
    """
    slug = _UNSAFE_CHARS.sub("-", name or "")
    slug = _DASH_RUNS.sub("-", slug).strip("-")
    return slug or uuid.uuid4().hex


def original_filename(blob_path: str) -> str:
    """Last path segment of ``blob_path`` (``"input"`` when empty)."""
    return basename(blob_path.rstrip("/")) or "input"


def output_path(output_container: str, folder: str, filename: str) -> str:
    return f"{output_container}/{folder}/{filename}"


def build_output_document(
    *,
    reference_id: str,
    processor: str,
    main_content: str,
    message: Any,
    original_filename: str,
    origin_file: str,
    folder: str,
) -> dict[str, Any]:
    return {
        "document_id": slugify_document_id(original_filename),
        "reference_id": reference_id,
        "processor": processor,
        "main_content": main_content,
        "message": message,
        "original_filename": original_filename,
        "origin_file": origin_file,
        "folderName": folder,
    }
