"""
check-kit - Tell a command-line tool when a newer version of itself is published.

Core Modules:
- Orchestration: check(), check_in_background()
- Cache: Per-package update records with a time-gated refresh
- Registry: npm dist-tag lookup with a single authenticated retry
- Filesystem: Writers that keep files owned by the invoking user under sudo
"""

__version__ = "1.0.0"

from .errors import (
    CheckKitError,
    InvalidInput,
    PackageDescriptorError,
    RegistryError,
    RegistryUnreachable,
    RegistryTimeout,
    RegistryServerError,
    MalformedResponse,
    UnknownDistTag,
    PackageNotFound,
)
from .fsutil import OwnerContext, ensure_dir, write_file, move
from .cache import UpdateRecord, get_meta_path, load_record, save_record, DEFAULT_META_DIR
from .policy import should_check, now_ms
from .versions import compare_versions, is_newer
from .npmrc import Credential, NpmConfig, load_npm_config
from .registry import (
    AuthState,
    RegistryQuery,
    HttpResponse,
    UrllibTransport,
    build_query,
    query_latest,
)
from .package import check_package_args, find_package, load_package, resolve_package
from .config import CheckConfig, load_config
from .checker import check, check_in_background
from .logging_config import enable_logging, disable_logging

__all__ = [
    "__version__",
    # Errors
    "CheckKitError",
    "InvalidInput",
    "PackageDescriptorError",
    "RegistryError",
    "RegistryUnreachable",
    "RegistryTimeout",
    "RegistryServerError",
    "MalformedResponse",
    "UnknownDistTag",
    "PackageNotFound",
    # Filesystem
    "OwnerContext",
    "ensure_dir",
    "write_file",
    "move",
    # Cache and policy
    "UpdateRecord",
    "get_meta_path",
    "load_record",
    "save_record",
    "DEFAULT_META_DIR",
    "should_check",
    "now_ms",
    "compare_versions",
    "is_newer",
    # Registry
    "Credential",
    "NpmConfig",
    "load_npm_config",
    "AuthState",
    "RegistryQuery",
    "HttpResponse",
    "UrllibTransport",
    "build_query",
    "query_latest",
    # Package descriptor
    "find_package",
    "load_package",
    "check_package_args",
    "resolve_package",
    # Orchestration
    "CheckConfig",
    "load_config",
    "check",
    "check_in_background",
    # Logging
    "enable_logging",
    "disable_logging",
]
