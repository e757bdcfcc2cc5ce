# src/__init__.py — v1
"""ojlink: reconcile desired judicial-body bindings against a noisy ledger."""

from ojlink.version import __version__

__all__ = ["__version__"]
