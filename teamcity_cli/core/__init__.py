"""
Core layer - Raw types and HTTP client.

This layer provides:
- Typed dataclasses for TeamCity REST representations
- The build normalizer
- Low-level HTTP client with auth and error handling
"""

from teamcity_cli.core.client import (
    APIClient,
    APIError,
    DecodeError,
    NotFoundError,
    SerializeError,
    TeamCityError,
    TransportError,
    ValidationError,
)
from teamcity_cli.core.types import (
    Build,
    Change,
    Property,
    Triggered,
    normalize_build,
    properties_to_dict,
    properties_to_list,
)

__all__ = [
    "APIClient",
    "APIError",
    "Build",
    "Change",
    "DecodeError",
    "NotFoundError",
    "Property",
    "SerializeError",
    "TeamCityError",
    "TransportError",
    "Triggered",
    "ValidationError",
    "normalize_build",
    "properties_to_dict",
    "properties_to_list",
]
