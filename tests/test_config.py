"""
Test configuration management
"""
from helpdesk_sim.config import Settings, get_settings


def test_settings_singleton():
    """Test settings returns same instance"""
    settings1 = get_settings()
    settings2 = get_settings()
    assert settings1 is settings2


def test_settings_defaults():
    """Test default values"""
    settings = Settings(_env_file=None)
    assert settings.fastapi_env == "development"
    assert settings.fastapi_port == 8000
    assert settings.log_level == "INFO"
    assert settings.shift_duration_seconds == 600.0
    assert settings.tutorial_ticket_count == 3
    assert settings.critical_cooldown_seconds == 30.0


def test_cors_origins_parsed():
    """Test comma-separated origins are split and trimmed"""
    settings = Settings(_env_file=None, allowed_origins="http://a.test, http://b.test,,")
    assert settings.cors_origins == ["http://a.test", "http://b.test"]


def test_audit_persistence_needs_both_credentials():
    """Test Supabase persistence only turns on with URL and key"""
    assert not Settings(_env_file=None, supabase_url="", supabase_service_role_key="").audit_persistence_enabled
    assert not Settings(
        _env_file=None, supabase_url="https://x.supabase.co", supabase_service_role_key=""
    ).audit_persistence_enabled
    assert Settings(
        _env_file=None, supabase_url="https://x.supabase.co", supabase_service_role_key="secret"
    ).audit_persistence_enabled


def test_environment_override(monkeypatch):
    """Test timing knobs come from the environment"""
    monkeypatch.setenv("SHIFT_DURATION_SECONDS", "120")
    monkeypatch.setenv("SPAWN_PROBABILITY", "0.5")

    settings = Settings(_env_file=None)

    assert settings.shift_duration_seconds == 120.0
    assert settings.spawn_probability == 0.5
