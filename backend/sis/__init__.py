"""Student information system REST backend."""

__version__ = "0.1.0"
