"""
TeamCity CLI - Three-layer client for the TeamCity REST API.

Layers:
- core: Raw types, build normalizer and HTTP client
- sdk: High-level TeamCityClient with the build operations
- cli: Command-line interface
"""

from teamcity_cli.sdk import TeamCityClient

__version__ = "0.1.0"
__all__ = ["TeamCityClient"]
