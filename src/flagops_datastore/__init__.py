"""flagops data store provider library."""

from .config import DataStoreConfig
from .exceptions import (
    ConfigurationError,
    DataStoreError,
    DataStoreErrorCodes,
    FetchError,
    WriteError,
)
from .http_client import HttpIdentityStore
from .models import FETCH_FAILED_MESSAGE, IdentityAttributes, IdentityNamespace
from .provider import PROVIDER_NAME, DataStoreProvider, inject_identity_context

__all__ = [
    "ConfigurationError",
    "DataStoreConfig",
    "DataStoreError",
    "DataStoreErrorCodes",
    "DataStoreProvider",
    "FETCH_FAILED_MESSAGE",
    "FetchError",
    "HttpIdentityStore",
    "IdentityAttributes",
    "IdentityNamespace",
    "PROVIDER_NAME",
    "WriteError",
    "inject_identity_context",
]
