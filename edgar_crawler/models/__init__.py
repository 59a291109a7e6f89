"""SQLAlchemy models for the EDGAR crawler."""

from __future__ import annotations

from .filing import FilingRecordRow

__all__ = ["FilingRecordRow"]
