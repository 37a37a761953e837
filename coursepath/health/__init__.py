"""Liveness and readiness endpoints."""

from coursepath.health.router import router


__all__ = ["router"]
