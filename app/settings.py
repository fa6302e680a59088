import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    # Upstream payments API (capture endpoint lives under /payments/capture-payment/{token})
    PAYMENTS_API_URL: str = os.getenv("PAYMENTS_API_URL", "http://localhost:3001/api")
    CAPTURE_TIMEOUT_SEC: float = float(os.getenv("CAPTURE_TIMEOUT_SEC", "15"))

    # Return-to-caller routes offered by the finalization page
    BILLING_ROUTE: str = os.getenv("BILLING_ROUTE", "/billing")
    DASHBOARD_ROUTE: str = os.getenv("DASHBOARD_ROUTE", "/dashboard")

    # Detached console window
    APP_TITLE: str = os.getenv("APP_TITLE", "ContainerStacks")
    CLOSE_FALLBACK_DELAY_MS: int = int(os.getenv("CLOSE_FALLBACK_DELAY_MS", "150"))
    # Bundle of the external terminal component, mounted into the console page
    TERMINAL_SCRIPT_URL: str = os.getenv("TERMINAL_SCRIPT_URL", "/static/ssh-terminal.js")

    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "")

    # Observability
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    REDIS_SOCKET_TIMEOUT_SEC: float = float(os.getenv("REDIS_SOCKET_TIMEOUT_SEC", "0.5"))
    METRICS_ENABLED: bool = os.getenv("METRICS_ENABLED", "true").lower() == "true"
    ENABLE_SECRET_REDACTION: bool = os.getenv("ENABLE_SECRET_REDACTION", "true").lower() == "true"
    TARGET_CAPTURE_P95_SEC: float = float(os.getenv("TARGET_CAPTURE_P95_SEC", "5.0"))

    # Admin endpoints
    ADMIN_RBAC_ENABLED: bool = os.getenv("ADMIN_RBAC_ENABLED", "true").lower() == "true"
    ADMIN_API_KEY: str = os.getenv("ADMIN_API_KEY", "")

settings = Settings()
