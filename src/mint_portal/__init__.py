"""
mint-portal: build pipeline status and release-gating core.

File: src/mint_portal/__init__.py

Purpose
- Package root. Defines package-level metadata and import boundaries.

What should be included in this file
- Version export and a small public surface.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
