"""Liveness endpoint."""


async def health_check() -> dict:
    """GET /health"""
    return {"status": "ok"}
