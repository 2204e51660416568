"""esmforge: signature-addressed, generate-once ES module service."""

__version__ = "0.1.0"
