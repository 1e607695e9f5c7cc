"""
Unit tests for configuration
"""

from importlib import reload

import pytest

import config.config as cfg
from config.platform_config import DEFAULT_BOTS, DEFAULT_SETTINGS, KYC_REQUIRED_LEVELS
from config.referral_config import get_tier_by_referrals, get_tier_config


def test_platform_defaults():
    """Test default settings and gated levels"""
    assert DEFAULT_SETTINGS["withdrawal_fee"] == 0.20
    assert DEFAULT_SETTINGS["bronze_fee"] == 0.01
    assert DEFAULT_SETTINGS["silver_fee"] == 0.02
    assert DEFAULT_SETTINGS["gold_fee"] == 0.05
    assert DEFAULT_SETTINGS["maintenance_mode"] is False
    assert DEFAULT_SETTINGS["bots_enabled"] is True

    assert KYC_REQUIRED_LEVELS == {"launch_bot": 1, "withdraw": 1}
    assert len({bot["name"] for bot in DEFAULT_BOTS}) == len(DEFAULT_BOTS)


def test_referral_tiers():
    assert get_tier_by_referrals(0) == "bronze"
    assert get_tier_by_referrals(5) == "silver"
    assert get_tier_by_referrals(15) == "gold"
    assert get_tier_config("gold")["settings_field"] == "gold_fee"


@pytest.fixture
def reload_config(monkeypatch):
    """Reload config.config with patched env, restore it afterwards"""
    monkeypatch.setattr("dotenv.load_dotenv", lambda *args, **kwargs: False)

    def _reload(**env):
        for key, value in env.items():
            if value is None:
                monkeypatch.delenv(key, raising=False)
            else:
                monkeypatch.setenv(key, value)
        return reload(cfg)

    yield _reload

    monkeypatch.undo()
    reload(cfg)


def test_simulated_deposits_parsing(reload_config):
    """Test ALLOW_SIMULATED_DEPOSITS parsing"""
    assert reload_config(ENVIRONMENT="development", ALLOW_SIMULATED_DEPOSITS="true").ALLOW_SIMULATED_DEPOSITS is True
    assert reload_config(ALLOW_SIMULATED_DEPOSITS="false").ALLOW_SIMULATED_DEPOSITS is False
    assert reload_config(ALLOW_SIMULATED_DEPOSITS=None).ALLOW_SIMULATED_DEPOSITS is True

    # never in production
    assert reload_config(ENVIRONMENT="production", ALLOW_SIMULATED_DEPOSITS="true").ALLOW_SIMULATED_DEPOSITS is False


def test_cors_origins_parsing(reload_config):
    config = reload_config(CORS_ORIGINS="https://a.example, https://b.example,,")

    assert config.CORS_ORIGINS == ["https://a.example", "https://b.example"]


def test_validate_config_in_production(reload_config):
    config = reload_config(
        ENVIRONMENT="production",
        JWT_SECRET="change-me-in-production",
        DEPOSIT_WEBHOOK_SECRET="",
    )
    assert config.validate_config() is False

    config = reload_config(
        ENVIRONMENT="production",
        JWT_SECRET="a-real-secret",
        DEPOSIT_WEBHOOK_SECRET="webhook-secret",
    )
    assert config.validate_config() is True
