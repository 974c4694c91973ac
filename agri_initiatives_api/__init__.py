"""
Top‑level package for the Agricultural Initiatives API.

This file makes ``agri_initiatives_api`` a Python package so that
modules within ``app`` can be imported using fully qualified names
like ``agri_initiatives_api.app.main``.

The package provides no public exports; all functionality lives in
submodules under ``app``.
"""

__all__ = []
