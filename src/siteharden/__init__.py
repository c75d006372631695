"""siteharden: post-build hardening passes for static site output."""

__version__ = "0.1.0"

__all__ = ["__version__"]
