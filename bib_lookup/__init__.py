"""Check whether files on disk are attached to entries of a BibTeX database."""

__version__ = "0.1.0"
