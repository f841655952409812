"""
Acme Platform API client

Typed async access to the Acme Platform HTTP API with request ids, retries
and normalised errors.
"""

from .client import AcmeClient
from .config import ClientConfig, load_config
from .errors import ApiClientError

__all__ = ["AcmeClient", "ApiClientError", "ClientConfig", "load_config"]

__version__ = "0.1.0"
