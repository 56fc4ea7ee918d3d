"""
Tests for settings parsing and production validation.
"""
import pytest

from config import Settings


@pytest.mark.unit
def test_immediate_success_methods_are_normalized():
    s = Settings(immediate_success_methods=" Visa, paynow ,,APPLEPAY")
    assert s.immediate_success_methods_set == {"visa", "paynow", "applepay"}


@pytest.mark.unit
def test_cors_origins_list():
    s = Settings(cors_origins="http://a.test, http://b.test")
    assert s.cors_origins_list == ["http://a.test", "http://b.test"]


@pytest.mark.unit
def test_production_rejects_nets_mock():
    s = Settings(environment="production", cors_origins="https://shop.test", nets_mock_enabled=True)
    with pytest.raises(ValueError, match="NETS_MOCK_ENABLED"):
        s.validate_production_settings()


@pytest.mark.unit
def test_production_rejects_wildcard_cors():
    s = Settings(environment="production", cors_origins="*", nets_mock_enabled=False)
    with pytest.raises(ValueError, match="CORS_ORIGINS"):
        s.validate_production_settings()


@pytest.mark.unit
def test_production_accepts_strict_settings():
    s = Settings(environment="production", cors_origins="https://shop.test", nets_mock_enabled=False)
    s.validate_production_settings()
