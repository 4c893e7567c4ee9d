import pytest
from pydantic import ValidationError

from tna_intake.core.config import ParameterProvider, Settings


class CountingLoader:
    def __init__(self):
        self.calls = 0

    def __call__(self) -> Settings:
        self.calls += 1
        return Settings(admin_email=f"admin{self.calls}@truenorthadvocates.org")


class TestParameterProvider:

    def setup_method(self):
        self.now = 0.0
        self.loader = CountingLoader()
        self.provider = ParameterProvider(
            loader=self.loader, ttl_seconds=300, clock=lambda: self.now,
        )

    def test_snapshot_is_reused_within_ttl(self):
        first = self.provider.get()
        self.now = 299
        second = self.provider.get()

        assert first is second
        assert self.loader.calls == 1

    def test_snapshot_reloads_after_ttl(self):
        self.provider.get()
        self.now = 300
        params = self.provider.get()

        assert self.loader.calls == 2
        assert params.admin_email == "admin2@truenorthadvocates.org"

    def test_refresh_forces_reload(self):
        self.provider.get()
        self.provider.refresh()

        assert self.loader.calls == 2

    def test_clear_drops_snapshot(self):
        self.provider.get()
        self.provider.clear()
        self.provider.get()

        assert self.loader.calls == 2


class TestSettings:

    def test_defaults(self):
        params = Settings(_env_file=None)

        assert params.rate_limit_requests == 100
        assert params.rate_limit_window_seconds == 900
        assert params.parameter_cache_ttl == 300

    def test_log_level_is_normalised(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level_is_rejected(self):
        with pytest.raises(ValidationError):
            Settings(log_level="chatty")

    def test_configured_parameters_lists_only_set_values(self):
        params = Settings(admin_email="alerts@truenorthadvocates.org", admin_phone="")

        assert "admin_email" in params.configured_parameters
        assert "admin_phone" not in params.configured_parameters
