"""
Feed document package.

Provides Atom encoding and decoding of update streams.
"""

from .codec import (
    ATOM_CONTENT_TYPE,
    ILLEGAL_XML_CHARS,
    DecodedDocument,
    DecodedEntry,
    MalformedDocumentError,
    decode,
    encode,
    parse_document,
)

__all__ = [
    "encode",
    "decode",
    "parse_document",
    "DecodedDocument",
    "DecodedEntry",
    "MalformedDocumentError",
    "ATOM_CONTENT_TYPE",
    "ILLEGAL_XML_CHARS",
]
