import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"


def _int(name: str, default: int) -> int:
    return int(os.getenv(name, default))


def _float(name: str, default: float) -> float:
    return float(os.getenv(name, default))


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./checkout.db"

    jwt_secret: str = ""
    access_token_ttl_seconds: int = 3600
    refresh_token_ttl_seconds: int = 7 * 24 * 3600

    # Shared secret for service-to-service calls (x-api-key)
    service_api_key: str = ""

    mpesa_api_host: str = "api.sandbox.vm.co.mz"
    mpesa_api_port: int = 18352
    mpesa_bearer_token: str = ""
    mpesa_service_provider_code: str = "171717"
    mpesa_default_phone: str = "258845760448"
    mpesa_timeout_seconds: float = 30.0

    order_service_url: str = "http://localhost:8000"
    notification_service_url: str = "http://localhost:8000"
    service_timeout_seconds: float = 5.0

    log_level: str = "INFO"
    log_format: str = "json"
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])

    @classmethod
    def from_env(cls, env_path: Path = ENV_PATH) -> "Settings":
        # variables already in the environment win over the file
        load_dotenv(dotenv_path=env_path)
        origins = os.getenv("CORS_ORIGINS", "http://localhost:3000")
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            jwt_secret=os.getenv("JWT_SECRET", ""),
            access_token_ttl_seconds=_int("ACCESS_TOKEN_TTL_SECONDS", cls.access_token_ttl_seconds),
            refresh_token_ttl_seconds=_int("REFRESH_TOKEN_TTL_SECONDS", cls.refresh_token_ttl_seconds),
            service_api_key=os.getenv("SERVICE_API_KEY", ""),
            mpesa_api_host=os.getenv("MPESA_API_HOST", cls.mpesa_api_host),
            mpesa_api_port=_int("MPESA_API_PORT", cls.mpesa_api_port),
            mpesa_bearer_token=os.getenv("MPESA_BEARER_TOKEN", ""),
            mpesa_service_provider_code=os.getenv(
                "MPESA_SERVICE_PROVIDER_CODE", cls.mpesa_service_provider_code
            ),
            mpesa_default_phone=os.getenv("MPESA_DEFAULT_PHONE", cls.mpesa_default_phone),
            mpesa_timeout_seconds=_float("MPESA_TIMEOUT_SECONDS", cls.mpesa_timeout_seconds),
            order_service_url=os.getenv("ORDER_SERVICE_URL", cls.order_service_url),
            notification_service_url=os.getenv(
                "NOTIFICATION_SERVICE_URL", cls.notification_service_url
            ),
            service_timeout_seconds=_float("SERVICE_TIMEOUT_SECONDS", cls.service_timeout_seconds),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            log_format=os.getenv("LOG_FORMAT", cls.log_format),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )
