"""Template fingerprint that survives re-saving a document with different runs."""

from __future__ import annotations

import hashlib
import json
import re

from fillengine.container.introspector import ContainerKind, sniff_kind
from fillengine.utils.docx_xml import W_P, W_T, load_document

_SPACE_RE = re.compile(r"[ \t]+")


def compute_fingerprint(content: bytes) -> str:
    """Return a SHA256 fingerprint for template bytes.

    PDFs hash their raw bytes. DOCX files hash their paragraph texts in order,
    so splitting or merging runs does not change the fingerprint.
    """

    kind = sniff_kind(content)
    if kind is ContainerKind.FIXED_LAYOUT:
        digest = hashlib.sha256(content).hexdigest()
        return f"pdf:{digest}"

    document = load_document(content)
    paragraphs = [
        _normalize_whitespace("".join(node.text or "" for node in paragraph.iter(W_T)))
        for paragraph in document.element.body.iter(W_P)
    ]
    serialized = json.dumps({"paragraphs": paragraphs}, sort_keys=True, separators=(",", ":"))
    digest = hashlib.sha256(serialized.encode("utf-8")).hexdigest()
    return f"docx:{digest}"


def _normalize_whitespace(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _SPACE_RE.sub(" ", text)
    return text.strip()
