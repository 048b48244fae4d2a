"""HTTP file store for PDF documents organised in a three-level folder hierarchy."""

__version__ = "0.1.0"
