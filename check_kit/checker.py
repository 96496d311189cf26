"""
Update check orchestration.

check() reads the cached record for the package, asks the registry only when
the record is stale, stores the merged result and reports whether the
registry's dist-tag is newer than the running version.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Mapping

from .cache import UpdateRecord, get_meta_path, load_record, save_record
from .config import CheckConfig, load_config
from .errors import InvalidInput, PackageNotFound, RegistryTimeout, RegistryUnreachable
from .fsutil import OwnerContext
from .logging_config import enable_logging_from_env
from .package import check_package_args, resolve_package
from .policy import now_ms, should_check
from .registry import CredentialLookup, Transport, UrllibTransport, query_latest
from .versions import is_newer

logger = logging.getLogger(__name__)

_UNSET: Any = object()


def _config_with_overrides(config: CheckConfig | None, **overrides: Any) -> CheckConfig:
    if config is None:
        config = load_config()
    elif not isinstance(config, CheckConfig):
        raise InvalidInput("Expected config to be a CheckConfig")

    changes = {key: value for key, value in overrides.items() if value is not _UNSET}
    return dataclasses.replace(config, **changes) if changes else config


def check(
    pkg: Mapping[str, Any] | str | os.PathLike[str] | None = None,
    *,
    cwd: str | None = None,
    dist_tag: str = _UNSET,
    force: bool = False,
    check_interval: int = _UNSET,
    meta_dir: str = _UNSET,
    registry_url: str | None = _UNSET,
    timeout: float = _UNSET,
    apply_owner: bool = _UNSET,
    uid: int | None = None,
    gid: int | None = None,
    config: CheckConfig | None = None,
    transport: Transport | None = None,
    credential_lookup: CredentialLookup | None = None,
    owner_context: OwnerContext | None = None,
    now: int | None = None,
) -> UpdateRecord:
    """
    Check whether a newer version of a package is published.

    Args:
        pkg: Parsed package.json, path to one, or None to search from cwd
        cwd: Directory to search for package.json and .npmrc
        dist_tag: Distribution tag to compare against
        force: Query the registry even if the cached record is fresh
        check_interval: Milliseconds a registry answer stays fresh
        meta_dir: Directory holding update records
        registry_url: Registry base URL
        timeout: Request timeout in seconds
        apply_owner: Keep new cache files owned by the parent directory's owner
        uid: Explicit owner for cache files
        gid: Explicit group for cache files
        config: Base settings (load_config() if None); keyword arguments override it
        transport: HTTP capability
        credential_lookup: Credential source for the auth retry
        owner_context: Ownership capabilities
        now: Current epoch milliseconds

    Returns:
        UpdateRecord describing the current and latest versions

    Raises:
        InvalidInput: If an option is invalid
        PackageDescriptorError: If package.json is missing or incomplete
        RegistryServerError: If the registry answered with an unexpected status
        MalformedResponse: If the registry response is not a JSON object
        UnknownDistTag: If the dist-tag does not exist for the package
    """
    if not isinstance(force, bool):
        raise InvalidInput("Expected force to be a boolean")
    check_package_args(pkg, cwd)
    enable_logging_from_env()

    settings = _config_with_overrides(
        config,
        dist_tag=dist_tag,
        check_interval=check_interval,
        meta_dir=meta_dir,
        registry_url=registry_url,
        timeout=timeout,
        apply_owner=apply_owner,
    )
    name, version = resolve_package(pkg, cwd)

    if now is None:
        now = now_ms()

    meta_file = get_meta_path(settings.meta_dir, name, settings.dist_tag)
    record = load_record(meta_file)
    record.name = name
    record.dist_tag = settings.dist_tag
    record.current = version

    result_latest = record.latest
    write = True

    if should_check(record, force, settings.check_interval, now):
        try:
            record.latest = _query(name, settings, transport, credential_lookup, cwd)
            record.last_check = now
            result_latest = record.latest
        except PackageNotFound:
            logger.debug(f"{name} does not exist in the registry")
            record.latest = None
            record.last_check = now
            result_latest = None
        except RegistryUnreachable as e:
            logger.warning(f"Unable to check for {name} updates: {e}")
            result_latest = None
            write = not isinstance(e, RegistryTimeout)
    else:
        logger.debug(f"Using cached result for {name}@{settings.dist_tag} from {meta_file}")

    record.update_available = is_newer(record.latest, version)

    if write:
        save_record(
            meta_file,
            record,
            apply_owner=settings.apply_owner,
            uid=uid,
            gid=gid,
            context=owner_context,
        )

    result = dataclasses.replace(
        record,
        latest=result_latest,
        update_available=is_newer(result_latest, version),
    )

    if result.update_available:
        logger.info(f"{name}@{version} has newer version {result.latest} available")
    else:
        logger.info(f"{name}@{version} is already the latest version")

    return result


def _query(
    name: str,
    settings: CheckConfig,
    transport: Transport | None,
    credential_lookup: CredentialLookup | None,
    cwd: str | None,
) -> str | None:
    if transport is None:
        transport = UrllibTransport(
            proxy=settings.proxy,
            strict_ssl=settings.strict_ssl,
            ca_file=settings.ca_file,
        )

    return query_latest(
        name,
        settings.dist_tag,
        transport=transport,
        registry_url=settings.registry_url,
        credential_lookup=credential_lookup,
        timeout=settings.timeout,
        cwd=cwd,
    )


def check_in_background(
    executor: ThreadPoolExecutor | None = None,
    **kwargs: Any,
) -> Future[UpdateRecord]:
    """
    Run check() on a worker thread.

    Args:
        executor: Executor to submit to (a single-use one if None)
        **kwargs: Arguments for check()

    Returns:
        Future resolving to the check result
    """
    if executor is not None:
        return executor.submit(check, **kwargs)

    own_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="check-kit")
    future = own_executor.submit(check, **kwargs)
    own_executor.shutdown(wait=False)
    return future
