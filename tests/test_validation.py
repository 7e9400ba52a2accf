"""
Tests for the validation manager and its inventory cache

The fetcher and the clock are injected (see conftest), so expiry is driven by
advancing a fake clock and fetches are counted directly.
"""

import time
from unittest.mock import patch

import pytest

from core.errors import (
    ConfigError,
    CredentialError,
    ModelNotFoundError,
    ServiceUnavailableError,
)
from comfyui_model_router.model_registry import MODEL_REGISTRY
from comfyui_model_router.standardizer import _run_pipeline, levenshtein_distance
from comfyui_model_router.validation import (
    MAX_INVENTORY_TTL_MS,
    CacheSweeper,
    InventoryCache,
    ModelValidationManager,
    ValidationResult,
)

from conftest import CountingFetcher


class TestValidateModelExistence:
    """Tests for validate_model_existence()"""

    def test_prefixed_id_resolves_to_server_spelling(self, manager, fetcher):
        """Test the server's own file name is returned"""
        result = manager.validate_model_existence("comfyui/flux1-dev")
        assert result.exists is True
        assert result.actual_file_name == "FLUX1-DEV.safetensors"
        assert result.standard_name == "flux1-dev.safetensors"
        assert result.priority == 1
        assert result.variant == "dev"
        assert fetcher.calls == 1

    def test_gguf_file(self, manager):
        """Test bare names find GGUF files"""
        result = manager.validate_model_existence("flux1-schnell-Q4_K_S")
        assert result.actual_file_name == "flux1-schnell-Q4_K_S.gguf"
        assert result.variant == "schnell"

    def test_validated_at_uses_clock(self, manager, clock):
        """Test the timestamp comes from the injected clock"""
        result = manager.validate_model_existence("sd3.5_large")
        assert result.validated_at_ms == clock.now_ms

    def test_unknown_name_makes_no_fetch(self, manager, fetcher):
        """Test a name that does not standardize never touches the server"""
        with pytest.raises(ModelNotFoundError):
            manager.validate_model_existence("stable-diffusion-v1-5.ckpt")
        assert fetcher.calls == 0

    def test_registry_model_missing_from_server(self, manager, fetcher):
        """Test a known model that the server lacks"""
        with pytest.raises(ModelNotFoundError) as exc_info:
            manager.validate_model_existence("flux1-kontext-dev")
        assert exc_info.value.standard_name == "flux1-kontext-dev.safetensors"
        assert exc_info.value.details["reason"] == "no matching file on the ComfyUI server"
        assert fetcher.calls == 1

    def test_strict_manager_rejects_alias(self, manager, fetcher):
        """Test aliases need allow_fuzzy"""
        with pytest.raises(ModelNotFoundError):
            manager.validate_model_existence("flux-dev")
        assert fetcher.calls == 0

    def test_fuzzy_manager_follows_alias(self, fetcher, clock):
        """Test a fuzzy manager resolves historical names"""
        manager = ModelValidationManager(fetch_fn=fetcher, now_fn=clock, allow_fuzzy=True)
        result = manager.validate_model_existence("flux-dev")
        assert result.actual_file_name == "FLUX1-DEV.safetensors"

    def test_fuzzy_manager_keeps_quantization(self, clock):
        """Test another GGUF level on the server is not taken for the requested one"""
        fetcher = CountingFetcher(["flux1-dev-Q4_1.gguf"])
        manager = ModelValidationManager(fetch_fn=fetcher, now_fn=clock, allow_fuzzy=True)
        with pytest.raises(ModelNotFoundError) as exc_info:
            manager.validate_model_existence("flux1-dev-Q4_0.gguf")
        assert exc_info.value.standard_name == "flux1-dev-Q4_0.gguf"
        assert fetcher.calls == 1

    def test_first_matching_server_file_wins(self, clock):
        """Test duplicates on the server resolve to the first listed file"""
        fetcher = CountingFetcher(["models/Flux1-Dev.safetensors", "flux1-dev.safetensors"])
        manager = ModelValidationManager(fetch_fn=fetcher, now_fn=clock)
        assert manager.validate_model_existence("flux1-dev").actual_file_name == "models/Flux1-Dev.safetensors"

    def test_result_to_dict_omits_missing_fields(self):
        """Test unset optional fields are left out"""
        assert ValidationResult(exists=True, validated_at_ms=5).to_dict() == {"exists": True, "validated_at_ms": 5}


class TestTransportFailures:
    """Fetch failures propagate and are never cached"""

    def test_typed_error_propagates(self, manager, fetcher):
        """Test a credential failure is not reported as a missing model"""
        fetcher.error = CredentialError(status=401)
        with pytest.raises(CredentialError) as exc_info:
            manager.validate_model_existence("flux1-dev")
        assert exc_info.value.code == "CREDENTIAL_ERROR"

    def test_failure_not_cached(self, manager, fetcher):
        """Test the next call after a failure fetches again"""
        fetcher.error = ServiceUnavailableError(status=503)
        with pytest.raises(ServiceUnavailableError):
            manager.validate_model_existence("flux1-dev")

        fetcher.error = None
        result = manager.validate_model_existence("flux1-dev")
        assert result.actual_file_name == "FLUX1-DEV.safetensors"
        assert fetcher.calls == 2

    def test_untyped_error_wrapped(self, manager, fetcher):
        """Test unexpected fetch errors become SERVICE_UNAVAILABLE"""
        original = RuntimeError("socket exploded")
        fetcher.error = original
        with pytest.raises(ServiceUnavailableError) as exc_info:
            manager.get_server_inventory()
        assert exc_info.value.__cause__ is original
        assert "socket exploded" in str(exc_info.value)

    def test_failed_fetch_counted(self, manager, fetcher):
        """Test failed attempts still count as fetches"""
        fetcher.error = ServiceUnavailableError()
        with pytest.raises(ServiceUnavailableError):
            manager.get_server_inventory()
        assert manager.get_cache_stats()["fetch_count"] == 1
        assert manager.get_cache_stats()["cached"] is False


class TestInventoryCache:
    """TTL behaviour of the inventory cache"""

    def test_reads_within_ttl_share_one_fetch(self, manager, fetcher, clock):
        """Test repeated validations inside the TTL fetch once"""
        manager.validate_model_existence("flux1-dev")
        clock.advance(30_000)
        manager.validate_model_existence("sd3.5_large")
        clock.advance(29_999)
        manager.validate_model_existence("flux1-schnell-Q4_K_S")
        assert fetcher.calls == 1

    def test_expired_entry_refetches(self, manager, fetcher, clock):
        """Test the first read after the TTL fetches again"""
        manager.get_server_inventory()
        clock.advance(MAX_INVENTORY_TTL_MS + 1)
        manager.get_server_inventory()
        assert fetcher.calls == 2

    def test_new_server_file_visible_after_expiry(self, manager, fetcher, clock):
        """Test inventory changes are picked up once the entry expires"""
        with pytest.raises(ModelNotFoundError):
            manager.validate_model_existence("flux1-krea-dev")

        fetcher.files.append("flux1-krea-dev.safetensors")
        with pytest.raises(ModelNotFoundError):
            manager.validate_model_existence("flux1-krea-dev")

        clock.advance(MAX_INVENTORY_TTL_MS + 1)
        result = manager.validate_model_existence("flux1-krea-dev")
        assert result.actual_file_name == "flux1-krea-dev.safetensors"

    def test_clear_forces_fetch(self, manager, fetcher):
        """Test clear_cache() drops the entry"""
        manager.get_server_inventory()
        manager.clear_cache()
        manager.get_server_inventory()
        assert fetcher.calls == 2

    def test_clear_expired(self, manager, clock):
        """Test only stale entries are evicted"""
        assert manager.clear_expired_caches() == 0
        manager.get_server_inventory()
        assert manager.clear_expired_caches() == 0
        clock.advance(MAX_INVENTORY_TTL_MS + 1)
        assert manager.clear_expired_caches() == 1
        assert manager.get_cache_stats()["cache_age_ms"] == -1

    def test_stats(self, manager, clock):
        """Test stats before and after a fetch"""
        stats = manager.get_cache_stats()
        assert stats["cached"] is False
        assert stats["cache_age_ms"] == -1
        assert stats["entry_count"] == 0
        assert stats["fetch_count"] == 0

        manager.get_server_inventory()
        clock.advance(1_500)
        stats = manager.get_cache_stats()
        assert stats["cached"] is True
        assert stats["cache_age_ms"] == 1_500
        assert stats["entry_count"] == 3
        assert stats["fetch_count"] == 1

    def test_returned_list_is_a_copy(self, manager):
        """Test callers cannot mutate the cached inventory"""
        files = manager.get_server_inventory()
        files.clear()
        assert len(manager.get_server_inventory()) == 3

    def test_ttl_clamped_to_one_minute(self, fetcher, clock):
        """Test longer TTLs are clamped"""
        cache = InventoryCache(fetcher, clock, ttl_ms=10 * MAX_INVENTORY_TTL_MS)
        assert cache.ttl_ms == MAX_INVENTORY_TTL_MS

    def test_negative_ttl_rejected(self, fetcher, clock):
        """Test a negative TTL is a configuration error"""
        with pytest.raises(ConfigError):
            InventoryCache(fetcher, clock, ttl_ms=-1)

    def test_shorter_ttl(self, fetcher, clock):
        """Test a custom TTL below the maximum is honoured"""
        cache = InventoryCache(fetcher, clock, ttl_ms=1_000)
        cache.get_server_inventory()
        clock.advance(1_001)
        cache.get_server_inventory()
        assert fetcher.calls == 2

    def test_manager_accepts_prebuilt_cache(self, fetcher, clock):
        """Test an injected cache is used as-is"""
        cache = InventoryCache(fetcher, clock, ttl_ms=5_000)
        manager = ModelValidationManager(cache=cache)
        assert manager.get_cache_stats()["ttl_ms"] == 5_000
        assert manager.now_fn is clock


class TestCacheSweeper:
    """Tests for the background eviction thread"""

    def test_interval_must_be_positive(self, manager):
        """Test zero or negative intervals are rejected"""
        with pytest.raises(ConfigError):
            CacheSweeper(manager.cache, 0)

    def test_sweeper_evicts_stale_entry(self, manager, clock):
        """Test the sweeper clears an expired entry without refetching"""
        manager.get_server_inventory()
        clock.advance(MAX_INVENTORY_TTL_MS + 1)

        sweeper = manager.start_periodic_cleanup(interval_seconds=0.01)
        try:
            assert sweeper.running
            deadline = time.time() + 2
            while manager.get_cache_stats()["cache_age_ms"] != -1 and time.time() < deadline:
                time.sleep(0.01)
            assert manager.get_cache_stats()["cache_age_ms"] == -1
            assert manager.get_cache_stats()["fetch_count"] == 1
        finally:
            manager.stop_periodic_cleanup()
        assert not sweeper.running

    def test_restart_replaces_sweeper(self, manager):
        """Test starting twice stops the first sweeper"""
        first = manager.start_periodic_cleanup(interval_seconds=60)
        second = manager.start_periodic_cleanup(interval_seconds=60)
        try:
            assert not first.running
            assert second.running
        finally:
            manager.stop_periodic_cleanup()


class TestRegistryListings:
    """Registry passthroughs on the manager"""

    def test_all_validated_models(self, manager):
        assert manager.get_all_validated_models() == list(MODEL_REGISTRY)

    def test_is_validated_model(self, manager, fetcher):
        """Test the check never contacts the server"""
        assert manager.is_validated_model("comfyui/flux1-dev")
        assert not manager.is_validated_model("flux-dev")
        assert fetcher.calls == 0

    def test_priority_lookup(self, manager):
        assert manager.get_model_priority("flux1-dev.safetensors")["priority"] == 1
        assert all(MODEL_REGISTRY[n].priority == 2 for n in manager.get_models_by_priority(2))


class TestValidationLogging:
    """Structured log events emitted by validation"""

    def test_fetch_then_hit(self, manager, capturing_logger):
        """Test the first read logs a fetch, the second a cache hit"""
        manager.validate_model_existence("flux1-dev")
        manager.validate_model_existence("flux1-dev")
        messages = capturing_logger.messages()
        assert messages.count("inventory_fetched") == 1
        assert "inventory_cache_hit" in messages
        assert messages.count("model_validated") == 2

    def test_validated_event_fields(self, manager, capturing_logger):
        """Test the validated event carries the resolution"""
        manager.validate_model_existence("comfyui/flux1-dev")
        logs = [log for log in capturing_logger.get_json_logs() if log["message"] == "model_validated"]
        assert logs[0]["actual_file_name"] == "FLUX1-DEV.safetensors"
        assert logs[0]["method"] == "exact"

    def test_failure_event(self, manager, capturing_logger):
        """Test a failed validation is logged with its reason"""
        with pytest.raises(ModelNotFoundError):
            manager.validate_model_existence("not-a-model")
        logs = [log for log in capturing_logger.get_json_logs() if log["message"] == "model_validation_failed"]
        assert logs[0]["model_id"] == "not-a-model"


class TestFuzzyInventoryScan:
    """Server file names are standardized once per name, not once per validation"""

    @pytest.fixture
    def large_inventory(self):
        files = [f"fluxmix-community-{i:03d}.safetensors" for i in range(300)]
        return CountingFetcher(files + ["flux1-dev.safetensors"])

    def test_repeat_validations_reuse_standardized_names(self, large_inventory, clock):
        manager = ModelValidationManager(fetch_fn=large_inventory, now_fn=clock, allow_fuzzy=True)
        _run_pipeline.cache_clear()

        with patch(
            "comfyui_model_router.standardizer.levenshtein_distance", wraps=levenshtein_distance
        ) as distance, patch("comfyui_model_router.standardizer._closest_keys") as closest:
            result = manager.validate_model_existence("flux1-dev")
            first_pass = distance.call_count

            manager.validate_model_existence("flux1-dev")
            manager.validate_model_existence("comfyui/flux1-dev")

        assert result.actual_file_name == "flux1-dev.safetensors"
        assert distance.call_count == first_pass
        assert large_inventory.calls == 1
        closest.assert_not_called()

    def test_length_gap_skips_distance(self, large_inventory, clock):
        """Test keys whose length alone rules them out are never compared"""
        manager = ModelValidationManager(fetch_fn=large_inventory, now_fn=clock, allow_fuzzy=True)
        _run_pipeline.cache_clear()

        with patch(
            "comfyui_model_router.standardizer.levenshtein_distance", wraps=levenshtein_distance
        ) as distance:
            manager.validate_model_existence("flux1-dev")

        for call in distance.call_args_list:
            a, b = call.args[:2]
            assert abs(len(a) - len(b)) <= 0.2 * max(len(a), len(b))
