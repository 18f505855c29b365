"""Motor insurance back-office: premium rating and policy lifecycle."""

__version__ = "0.1.0"
