"""Starlette middleware."""

from app.middleware.admission import AdmissionGateMiddleware

__all__ = ["AdmissionGateMiddleware"]
