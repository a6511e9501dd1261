"""Connection management and operational logging for VCF endpoints."""

__version__ = "0.3.0"

__all__ = ["__version__"]
