"""JoSAA cutoff CSV ingestion and normalization."""

__version__ = "0.1.0"
