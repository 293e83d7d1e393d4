from .wheel_refresh import refresh_stale_wheel

__all__ = [
    "refresh_stale_wheel",
]
