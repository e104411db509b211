from etagproxy._config import (
    CacheConfig as CacheConfig,
    ProxyConfig as ProxyConfig,
    RemoteConfig as RemoteConfig,
    ServerConfig as ServerConfig,
    load_config as load_config,
    parse_config as parse_config,
)
from etagproxy._exceptions import (
    ConfigurationError as ConfigurationError,
    EtagProxyError as EtagProxyError,
    TransportError as TransportError,
)
from etagproxy._fetcher import UpstreamFetcher as UpstreamFetcher
from etagproxy._headers import Headers as Headers
from etagproxy._ignore import IgnoreMatcher as IgnoreMatcher
from etagproxy._models import (
    Entry as Entry,
    FetchFailure as FetchFailure,
    FetchResult as FetchResult,
    Request as Request,
    Response as Response,
    ResponseMetadata as ResponseMetadata,
)
from etagproxy._proxy import AsyncCacheProxy as AsyncCacheProxy
from etagproxy._states import (
    AnyState as AnyState,
    CacheMiss as CacheMiss,
    CacheOptions as CacheOptions,
    CouldNotBeStored as CouldNotBeStored,
    FetchFailed as FetchFailed,
    FromCache as FromCache,
    IdleClient as IdleClient,
    InvalidateEntries as InvalidateEntries,
    NotModified as NotModified,
    State as State,
    StoreAndUse as StoreAndUse,
)
from etagproxy._storage import InMemoryStorage as InMemoryStorage, is_expired as is_expired
from etagproxy._sweeper import ExpirySweeper as ExpirySweeper

__all__ = (
    ## States
    "AnyState",
    "IdleClient",
    "CacheMiss",
    "FromCache",
    "NotModified",
    "CacheOptions",
    "State",
    "StoreAndUse",
    "CouldNotBeStored",
    "InvalidateEntries",
    "FetchFailed",
    ## Models
    "Request",
    "Response",
    "ResponseMetadata",
    "Entry",
    "FetchFailure",
    "FetchResult",
    ## Headers
    "Headers",
    ## Storage
    "InMemoryStorage",
    "is_expired",
    "ExpirySweeper",
    # Proxy
    "AsyncCacheProxy",
    "IgnoreMatcher",
    "UpstreamFetcher",
    # Config
    "ProxyConfig",
    "RemoteConfig",
    "CacheConfig",
    "ServerConfig",
    "load_config",
    "parse_config",
    # Errors
    "EtagProxyError",
    "ConfigurationError",
    "TransportError",
)

__version__ = "0.1.0"
