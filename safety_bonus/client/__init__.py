from .http import ApiClient, ApiError
from .store import FleetStore

__all__ = ["ApiClient", "ApiError", "FleetStore"]
