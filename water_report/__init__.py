"""Weekly water treatment report: section tables synchronised with a document store."""

__version__ = "0.1.0"
