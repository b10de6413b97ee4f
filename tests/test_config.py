import pytest

from conftest import FakeGateway
from imagecdn.core.config import Settings
from imagecdn.core.errors import ConfigurationError
from imagecdn.main import create_app


def test_settings_defaults_success():
    settings = Settings.from_env({})
    assert settings.port == 5000
    assert settings.max_file_size == 10 * 1024 * 1024
    assert settings.allowed_formats == ["jpg", "jpeg", "png", "gif", "webp", "svg"]
    assert settings.allowed_origins == ["http://localhost:3000", "http://localhost:5173"]
    assert settings.rate_limit_window_seconds == 900
    assert settings.rate_limit_max == 100
    assert not settings.is_production


def test_settings_from_env_success():
    settings = Settings.from_env(
        {
            "CLOUDINARY_CLOUD_NAME": "demo",
            "CLOUDINARY_API_KEY": "k",
            "CLOUDINARY_API_SECRET": "s",
            "PORT": "8080",
            "APP_ENV": "Production",
            "ALLOWED_ORIGINS": "https://a.example, https://b.example",
            "MAX_FILE_SIZE": "2048",
            "ALLOWED_FORMATS": "PNG,jpg",
        }
    )
    assert settings.port == 8080
    assert settings.is_production
    assert settings.allowed_origins == ["https://a.example", "https://b.example"]
    assert settings.max_file_size == 2048
    assert settings.allowed_formats == ["png", "jpg"]
    settings.require_credentials()


def test_settings_are_immutable_failure():
    settings = Settings.from_env({})
    with pytest.raises(Exception):
        settings.port = 1


def test_settings_invalid_number_failure():
    with pytest.raises(ConfigurationError):
        Settings.from_env({"PORT": "not-a-port"})


def test_create_app_without_credentials_failure():
    with pytest.raises(ConfigurationError) as exc:
        create_app(Settings.from_env({}))
    assert "CLOUDINARY_CLOUD_NAME" in str(exc.value)


def test_create_app_with_injected_gateway_success():
    app = create_app(Settings.from_env({}), gateway=FakeGateway())
    assert app.state.image_service.gateway is not None
