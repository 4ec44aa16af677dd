from __future__ import annotations

# Local frontends used during development.
DEV_ORIGINS = (
    "http://localhost:3000",
    "http://localhost:5173",
)


def build_allowed_origins(*, frontend_urls: str | None, include_dev: bool = True) -> list[str]:
    allowed: set[str] = set(DEV_ORIGINS) if include_dev else set()
    for origin in str(frontend_urls or "").split(","):
        origin = origin.strip().rstrip("/")
        if origin:
            allowed.add(origin)
    return sorted(allowed)
