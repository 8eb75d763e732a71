# hims_billing/core/config.py
import os
from decimal import Decimal
from typing import List
from pydantic import BaseModel
from dotenv import load_dotenv
from urllib.parse import quote_plus

load_dotenv()


def _split_csv(value: str) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


def _mysql_uri() -> str:
    driver = os.getenv("DB_DRIVER", "pymysql")
    user = os.getenv("MYSQL_USER", "hims_user")
    password = os.getenv("MYSQL_PASSWORD", "")
    host = os.getenv("MYSQL_HOST", "localhost")
    port = os.getenv("MYSQL_PORT", "3306")
    name = os.getenv("MYSQL_DB", "hims_billing")
    return (f"mysql+{driver}://{quote_plus(user)}:{quote_plus(password)}"
            f"@{host}:{port}/{name}?charset=utf8mb4")


class Settings(BaseModel):
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "HIMS IPD Billing")
    API_V1_STR: str = os.getenv("API_V1_STR", "/api")

    # CORS (env takes priority)
    BACKEND_CORS_ORIGINS: List[str] = _split_csv(
        os.getenv(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ))

    # ---------- Database ----------
    # DATABASE_URL wins; otherwise built from MYSQL_* (shared creds)
    SQLALCHEMY_DATABASE_URI: str = os.getenv("DATABASE_URL") or _mysql_uri()

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # ---------- Billing ----------
    CURRENCY_PREFIX: str = os.getenv("CURRENCY_PREFIX", "Rs")
    NICU_DEFAULT_HOURLY_RATE: Decimal = Decimal(
        os.getenv("NICU_DEFAULT_HOURLY_RATE", "500") or "500")

    # per-call deadline for lab / treatment / NICU lookups at discharge
    CHARGE_SOURCE_TIMEOUT_SECONDS: float = float(
        os.getenv("CHARGE_SOURCE_TIMEOUT_SECONDS", "5") or 5.0)
    CHARGE_SOURCE_WORKERS: int = int(
        os.getenv("CHARGE_SOURCE_WORKERS", "5") or 5)

    DISCHARGE_NUMBER_PREFIX: str = os.getenv("DISCHARGE_NUMBER_PREFIX",
                                             "DIS-")
    DISCHARGE_NUMBER_PADDING: int = int(
        os.getenv("DISCHARGE_NUMBER_PADDING", "6") or 6)


settings = Settings()
