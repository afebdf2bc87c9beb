"""
Tests for ProtectionService: rate limit, circuit breaker, retry and metrics.
"""
import pytest

from aurelius.config.settings import ProviderEntry, load_catalog
from aurelius.integrations.errors import AuthenticationError, IntegrationError
from aurelius.resilience import (
    CircuitOpenError,
    ProtectionService,
    RateLimitExceeded,
    get_protection_service,
    set_protection_service,
)


def _entry(**overrides) -> ProviderEntry:
    data = {
        "key": "acme",
        "name": "Acme",
        "module": "acme",
        "class": "AcmeIntegration",
        "rate_limit": {"requests": 100, "window": 60},
        "circuit": {"failure_threshold": 2, "success_threshold": 1, "recovery_timeout": 60},
    }
    data.update(overrides)
    return ProviderEntry.model_validate(data)


@pytest.fixture
def protection():
    return ProtectionService({"acme": _entry()}, retry_base_delay=0.0)


class TestExecute:
    """Tests for ProtectionService.execute."""

    @pytest.mark.asyncio
    async def test_returns_result_and_records_success(self, protection):
        async def fn():
            return {"id": "1"}

        result = await protection.execute("acme", "get_user", fn, key="user-1")

        assert result == {"id": "1"}
        metrics = protection.get_metrics("acme")
        assert metrics.successful_requests == 1
        assert metrics.operations == {"get_user": 1}

    @pytest.mark.asyncio
    async def test_errors_propagate_unchanged(self, protection):
        error = AuthenticationError("bad token", "acme", status_code=401)

        async def fn():
            raise error

        with pytest.raises(AuthenticationError) as exc_info:
            await protection.execute("acme", "get_user", fn)

        assert exc_info.value is error
        assert protection.get_metrics("acme").failed_requests == 1

    @pytest.mark.asyncio
    async def test_rate_limit_rejects_beyond_budget(self):
        protection = ProtectionService({"acme": _entry(rate_limit={"requests": 1, "window": 60})})

        async def fn():
            return "ok"

        await protection.execute("acme", "op", fn, key="user-1")
        with pytest.raises(RateLimitExceeded):
            await protection.execute("acme", "op", fn, key="user-1")

        # Separate bucket per user
        assert await protection.execute("acme", "op", fn, key="user-2") == "ok"
        assert protection.get_metrics("acme").rejected_requests == 1

    @pytest.mark.asyncio
    async def test_uncatalogued_provider_is_unlimited(self):
        protection = ProtectionService()

        async def fn():
            return "ok"

        for _ in range(5):
            assert await protection.execute("other", "op", fn) == "ok"
        assert protection.get_limiter("other") is None

    @pytest.mark.asyncio
    async def test_circuit_opens_per_operation(self, protection):
        async def fail():
            raise IntegrationError("down", "acme", status_code=503, retryable=True)

        async def ok():
            return "ok"

        for _ in range(2):
            with pytest.raises(IntegrationError):
                await protection.execute("acme", "get_orders", fail)

        with pytest.raises(CircuitOpenError):
            await protection.execute("acme", "get_orders", ok)

        # Other operations keep their own circuit
        assert await protection.execute("acme", "get_products", ok) == "ok"
        assert protection.get_metrics("acme").rejected_requests == 1

    @pytest.mark.asyncio
    async def test_client_errors_do_not_open_circuit_for_other_users(self, protection):
        async def rejected():
            raise AuthenticationError("bad token", "acme", status_code=401)

        async def ok():
            return "ok"

        for _ in range(5):
            with pytest.raises(AuthenticationError):
                await protection.execute("acme", "authenticate", rejected, key="user-1")

        assert protection.get_breaker("acme", "authenticate").is_open is False
        assert await protection.execute("acme", "authenticate", ok, key="user-2") == "ok"
        assert protection.get_metrics("acme").failed_requests == 5

    @pytest.mark.asyncio
    async def test_retries_retryable_errors(self, protection):
        calls = 0

        async def flaky():
            nonlocal calls
            calls += 1
            if calls == 1:
                raise IntegrationError("503", "acme", retryable=True)
            return "ok"

        assert await protection.execute("acme", "op", flaky, retries=2) == "ok"
        assert calls == 2

    @pytest.mark.asyncio
    async def test_does_not_retry_non_retryable(self, protection):
        calls = 0

        async def fn():
            nonlocal calls
            calls += 1
            raise AuthenticationError("no", "acme")

        with pytest.raises(AuthenticationError):
            await protection.execute("acme", "op", fn, retries=3)
        assert calls == 1


class TestCatalogWiring:
    def test_breaker_uses_catalog_thresholds(self, protection):
        breaker = protection.get_breaker("acme", "get_user")
        assert breaker.name == "acme:get_user"
        assert breaker.failure_threshold == 2

    def test_packaged_catalog_limits(self):
        protection = ProtectionService.from_catalog(load_catalog())
        limiter = protection.get_limiter("twitter")
        assert limiter.max_requests == 300
        assert limiter.window_seconds == 900

    @pytest.mark.asyncio
    async def test_stats_and_reset(self, protection):
        async def fn():
            return 1

        await protection.execute("acme", "op", fn)
        stats = protection.get_stats()
        assert "acme:op" in stats["circuits"]
        assert stats["metrics"]["acme"]["total_requests"] == 1

        protection.reset()
        assert protection.get_stats() == {"circuits": {}, "metrics": {}}


class TestGlobalService:
    def test_lazy_global_uses_catalog(self):
        service = get_protection_service()
        assert service is get_protection_service()
        assert service.get_limiter("wrike") is not None

    def test_set_replaces_global(self):
        custom = ProtectionService()
        set_protection_service(custom)
        assert get_protection_service() is custom
