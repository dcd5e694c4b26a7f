"""Terraform workspace management: files, operations, errors and provider processes."""

__version__ = "0.1.0"
__all__ = ["__version__"]