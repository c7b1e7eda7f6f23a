from .cache import CachePort
from .fetcher import FetcherPort
from .metadata import MetadataProviderPort

__all__ = [
    "CachePort",
    "FetcherPort",
    "MetadataProviderPort",
]
