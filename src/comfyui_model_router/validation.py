"""
Model Validation

Confirms that a model identifier names a file the ComfyUI server can load.

The server inventory is held in a single-entry TTL cache owned by the
manager. The fetch function and the clock are injected, so tests drive
expiry with a fake clock instead of patching time.

Usage:
    manager = ModelValidationManager()
    result = manager.validate_model_existence("comfyui/flux1-dev")
    result.actual_file_name   # the server's own spelling, e.g. "FLUX1-DEV.safetensors"
"""

import os
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from core.errors import ConfigError, ModelNotFoundError, ServiceUnavailableError, has_error_kind

from .discovery import fetch_checkpoint_inventory
from .mcp_utils import log_structured
from .model_registry import get_all_model_names, get_models_by_priority, get_models_by_variant
from .naming import strip_routing_prefix
from .standardizer import StandardizedModel, get_model_priority, standardize, try_standardize
from .types import CacheStatsDict, ModelVariant, ValidationResultDict

# Inventory freshness: nothing is cached longer than one minute
MAX_INVENTORY_TTL_MS = 60_000
INVENTORY_CACHE_TTL_MS = min(int(os.environ.get("COMFYUI_INVENTORY_TTL_MS", "60000")), MAX_INVENTORY_TTL_MS)
CACHE_SWEEP_SECONDS = float(os.environ.get("COMFYUI_CACHE_SWEEP_SECONDS", "300"))

InventoryFetcher = Callable[[], List[str]]
Clock = Callable[[], int]


def _now_ms() -> int:
    return int(time.time() * 1000)


# =============================================================================
# Inventory Cache
# =============================================================================


@dataclass(frozen=True)
class InventoryCacheEntry:
    """One snapshot of the server's file list."""

    server_file_names: Tuple[str, ...]
    fetched_at_ms: int
    ttl_ms: int

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.fetched_at_ms

    def is_expired(self, now_ms: int) -> bool:
        return self.age_ms(now_ms) > self.ttl_ms


class InventoryCache:
    """
    Single-entry TTL cache over an inventory fetch function.

    The fetch runs outside the lock, so concurrent callers after expiry may
    each fetch; the last result to land replaces the entry. Failed fetches
    are never stored.
    """

    def __init__(self, fetch_fn: InventoryFetcher, now_fn: Clock = _now_ms, ttl_ms: int = INVENTORY_CACHE_TTL_MS):
        if ttl_ms < 0:
            raise ConfigError(message=f"Inventory TTL must be >= 0, got {ttl_ms}", reason=ConfigError.INVALID_CONFIG)
        self.fetch_fn = fetch_fn
        self.now_fn = now_fn
        self.ttl_ms = min(ttl_ms, MAX_INVENTORY_TTL_MS)
        self._lock = threading.Lock()
        self._entry: Optional[InventoryCacheEntry] = None
        self._fetch_count = 0

    @property
    def fetch_count(self) -> int:
        """Number of fetch attempts, successful or not."""
        return self._fetch_count

    def get_server_inventory(self) -> List[str]:
        """
        Server file names, from cache when fresh.

        Raises:
            TransportError: The fetch failed (untyped failures are wrapped
                as ServiceUnavailableError).
        """
        now = self.now_fn()
        with self._lock:
            entry = self._entry
            if entry is not None and not entry.is_expired(now):
                log_structured("debug", "inventory_cache_hit", age_ms=entry.age_ms(now), count=len(entry.server_file_names))
                return list(entry.server_file_names)
            self._fetch_count += 1

        try:
            files = self.fetch_fn()
        except Exception as e:
            log_structured("warning", "inventory_fetch_failed", error=str(e), error_type=type(e).__name__)
            if has_error_kind(e):
                raise
            raise ServiceUnavailableError(message=f"Inventory fetch failed: {e}") from e

        entry = InventoryCacheEntry(tuple(files), self.now_fn(), self.ttl_ms)
        with self._lock:
            self._entry = entry
        log_structured("info", "inventory_fetched", count=len(entry.server_file_names), ttl_ms=self.ttl_ms)
        return list(entry.server_file_names)

    def clear(self) -> None:
        """Drop the entry; the next read fetches."""
        with self._lock:
            had_entry = self._entry is not None
            self._entry = None
        log_structured("info", "inventory_cache_cleared", had_entry=had_entry)

    def clear_expired(self) -> int:
        """Drop the entry if it is stale, without refetching. Returns the number evicted."""
        now = self.now_fn()
        with self._lock:
            if self._entry is None or not self._entry.is_expired(now):
                return 0
            age = self._entry.age_ms(now)
            self._entry = None
        log_structured("info", "inventory_cache_expired", age_ms=age)
        return 1

    def stats(self) -> CacheStatsDict:
        now = self.now_fn()
        with self._lock:
            entry = self._entry
        return {
            "cached": entry is not None and not entry.is_expired(now),
            "cache_age_ms": entry.age_ms(now) if entry is not None else -1,
            "ttl_ms": self.ttl_ms,
            "entry_count": len(entry.server_file_names) if entry is not None else 0,
            "fetch_count": self._fetch_count,
        }


class CacheSweeper:
    """Daemon thread that evicts a stale inventory entry on a fixed interval."""

    def __init__(self, cache: InventoryCache, interval_seconds: float = CACHE_SWEEP_SECONDS):
        if interval_seconds <= 0:
            raise ConfigError(
                message=f"Sweep interval must be > 0, got {interval_seconds}",
                reason=ConfigError.INVALID_CONFIG,
            )
        self.cache = cache
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._worker = threading.Thread(target=self._sweep_loop, name="inventory-cache-sweeper", daemon=True)

    def start(self) -> "CacheSweeper":
        self._worker.start()
        return self

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._worker.is_alive():
            self._worker.join(timeout=timeout)

    @property
    def running(self) -> bool:
        return self._worker.is_alive()

    def _sweep_loop(self) -> None:
        while not self._stop_event.wait(timeout=self.interval_seconds):
            self.cache.clear_expired()


# =============================================================================
# Validation Manager
# =============================================================================


@dataclass
class ValidationResult:
    """Outcome of a successful existence check."""

    exists: bool
    validated_at_ms: int
    actual_file_name: Optional[str] = None
    standard_name: Optional[str] = None
    priority: Optional[int] = None
    variant: Optional[str] = None

    def to_dict(self) -> ValidationResultDict:
        result: Dict[str, Any] = {"exists": self.exists, "validated_at_ms": self.validated_at_ms}
        for key in ("actual_file_name", "standard_name", "priority", "variant"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        return result


@dataclass
class ModelValidationManager:
    """
    Validates model identifiers against the live server inventory.

    Args:
        fetch_fn: Inventory fetcher (defaults to the ComfyUI object_info reader).
        now_fn: Clock in epoch milliseconds.
        cache: Pre-built cache; overrides fetch_fn and now_fn.
        allow_fuzzy: Standardize with alias, similarity and pattern steps.
    """

    fetch_fn: Optional[InventoryFetcher] = None
    now_fn: Optional[Clock] = None
    cache: Optional[InventoryCache] = None
    allow_fuzzy: bool = False
    _sweeper: Optional[CacheSweeper] = field(default=None, init=False, repr=False)

    def __post_init__(self):
        if self.cache is None:
            self.cache = InventoryCache(self.fetch_fn or fetch_checkpoint_inventory, self.now_fn or _now_ms)
        if self.now_fn is None:
            self.now_fn = self.cache.now_fn

    def validate_model_existence(self, model_id: str) -> ValidationResult:
        """
        Find the server file that holds a model.

        Args:
            model_id: User-facing identifier, optionally with a routing prefix.

        Returns:
            ValidationResult with the server's own file name.

        Raises:
            ModelNotFoundError: The identifier does not standardize (no fetch
                is made), or no server file standardizes to the same name.
            TransportError: The inventory could not be fetched.
        """
        name = strip_routing_prefix(model_id)
        try:
            target = standardize(name, allow_fuzzy=self.allow_fuzzy)
        except ModelNotFoundError as e:
            log_structured("info", "model_validation_failed", model_id=model_id, reason=e.reason)
            raise

        inventory = self.cache.get_server_inventory()
        actual = self._find_on_server(target, inventory)
        if actual is None:
            log_structured(
                "info",
                "model_validation_failed",
                model_id=model_id,
                standard_name=target.standard_name,
                reason="not on server",
                inventory_size=len(inventory),
            )
            raise ModelNotFoundError(
                model_name=model_id,
                reason="no matching file on the ComfyUI server",
                standard_name=target.standard_name,
            )

        result = ValidationResult(
            exists=True,
            validated_at_ms=self.now_fn(),
            actual_file_name=actual,
            standard_name=target.standard_name,
            priority=target.priority,
            variant=target.variant.value,
        )
        log_structured(
            "info",
            "model_validated",
            model_id=model_id,
            actual_file_name=actual,
            standard_name=target.standard_name,
            method=target.method.value,
        )
        return result

    def _find_on_server(self, target: StandardizedModel, inventory: List[str]) -> Optional[str]:
        # Both sides go through the same canonicalization; first match wins
        for file_name in inventory:
            candidate = try_standardize(file_name, allow_fuzzy=self.allow_fuzzy)
            if candidate is not None and candidate.standard_name == target.standard_name:
                return file_name
        return None

    # -------------------------------------------------------------------------
    # Cache control
    # -------------------------------------------------------------------------

    def get_server_inventory(self) -> List[str]:
        return self.cache.get_server_inventory()

    def clear_cache(self) -> None:
        self.cache.clear()

    def clear_expired_caches(self) -> int:
        return self.cache.clear_expired()

    def get_cache_stats(self) -> CacheStatsDict:
        return self.cache.stats()

    def start_periodic_cleanup(self, interval_seconds: float = CACHE_SWEEP_SECONDS) -> CacheSweeper:
        """Start (or restart) the background sweeper for stale inventory."""
        self.stop_periodic_cleanup()
        self._sweeper = CacheSweeper(self.cache, interval_seconds).start()
        return self._sweeper

    def stop_periodic_cleanup(self) -> None:
        if self._sweeper is not None:
            self._sweeper.stop()
            self._sweeper = None

    # -------------------------------------------------------------------------
    # Registry listings
    # -------------------------------------------------------------------------

    def get_model_priority(self, model_name: str) -> Optional[Dict[str, Any]]:
        return get_model_priority(model_name)

    def get_models_by_priority(self, priority: int) -> List[str]:
        return get_models_by_priority(priority)

    def get_models_by_variant(self, variant: ModelVariant) -> List[str]:
        return get_models_by_variant(variant)

    def get_all_validated_models(self) -> List[str]:
        """Every model name the manager can validate (registry keys)."""
        return get_all_model_names()

    def is_validated_model(self, model_name: str) -> bool:
        """Whether a name standardizes, without contacting the server."""
        return try_standardize(strip_routing_prefix(model_name), allow_fuzzy=self.allow_fuzzy) is not None
