"""
Configuration loading and endpoint definitions
"""

from .loader import DEFAULT_ENDPOINTS, ConfigLoader, EndpointConfig, endpoint_configs

__all__ = ["ConfigLoader", "EndpointConfig", "DEFAULT_ENDPOINTS", "endpoint_configs"]
