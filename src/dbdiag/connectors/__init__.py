from .factory import BACKENDS, create_backend, supported_kinds

__all__ = ["BACKENDS", "create_backend", "supported_kinds"]
