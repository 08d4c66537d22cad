from mpesa_checkout.config import Settings


def test_from_env_reads_dotenv_file(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("MPESA_DEFAULT_PHONE=258840000000\nMPESA_API_PORT=9999\n")
    monkeypatch.delenv("MPESA_DEFAULT_PHONE", raising=False)
    monkeypatch.delenv("MPESA_API_PORT", raising=False)

    settings = Settings.from_env(env_path=env_file)

    assert settings.mpesa_default_phone == "258840000000"
    assert settings.mpesa_api_port == 9999


def test_environment_wins_over_dotenv_file(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("MPESA_API_PORT=9999\n")
    monkeypatch.setenv("MPESA_API_PORT", "1234")

    assert Settings.from_env(env_path=env_file).mpesa_api_port == 1234


def test_defaults_without_dotenv_file(tmp_path, monkeypatch):
    for name in ("DATABASE_URL", "SERVICE_TIMEOUT_SECONDS", "CORS_ORIGINS"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env(env_path=tmp_path / "missing.env")

    assert settings.database_url == "sqlite:///./checkout.db"
    assert settings.service_timeout_seconds == 5.0
    assert settings.cors_origins == ["http://localhost:3000"]


def test_cors_origins_are_split(tmp_path, monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "http://a.example, http://b.example,")

    settings = Settings.from_env(env_path=tmp_path / "missing.env")

    assert settings.cors_origins == ["http://a.example", "http://b.example"]
