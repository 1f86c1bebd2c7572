import os
import yaml

ROOT_PATH = os.path.dirname(__file__)
CONFIG_FILE_PATH = os.path.join(ROOT_PATH, "env.yaml")

if os.path.exists(CONFIG_FILE_PATH):
    with open(CONFIG_FILE_PATH, "r") as r_file:
        data = yaml.safe_load(r_file)
else:
    data = dict()


class ApplicationConfig:
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./billing.db")
    API_PREFIX = data.get("API_PREFIX", "/api")
    API_PORT = data.get("API_PORT", 8000)
    API_HOST = data.get("API_HOST", "0.0.0.0")
    CORS_ORIGINS = data.get("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = data.get("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")

    # Usage reconciliation
    RECONCILIATION_ENABLED = bool(data.get("RECONCILIATION_ENABLED", True))
    RECONCILIATION_INTERVAL_SECONDS = data.get("RECONCILIATION_INTERVAL_SECONDS", 86400)  # Daily
    VIRTUALIZATION_SOURCE_ENABLED = bool(data.get("VIRTUALIZATION_SOURCE_ENABLED", True))
    CATALOG_SYNC_ENABLED = bool(data.get("CATALOG_SYNC_ENABLED", False))  # Before each run

    # Cloud subscription provider
    CLOUD_PROVIDER_BASE_URL = data.get("CLOUD_PROVIDER_BASE_URL", "")
    CLOUD_PROVIDER_API_KEY = data.get("CLOUD_PROVIDER_API_KEY", "")
    CLOUD_PROVIDER_TIMEOUT_SECONDS = data.get("CLOUD_PROVIDER_TIMEOUT_SECONDS", 30.0)
    CLOUD_SUBSCRIPTION_PRODUCT_NUMBER = data.get("CLOUD_SUBSCRIPTION_PRODUCT_NUMBER", 40011000)
    CLOUD_SUBSCRIPTION_GROUP_ID = data.get("CLOUD_SUBSCRIPTION_GROUP_ID", None)

    # Notifications
    OPERATIONS_ALERT_EMAIL = data.get("OPERATIONS_ALERT_EMAIL", "billing-ops@example.com")
    SMTP_HOST = data.get("SMTP_HOST", "")
    SMTP_PORT = data.get("SMTP_PORT", 587)
    SMTP_USERNAME = data.get("SMTP_USERNAME", "")
    SMTP_PASSWORD = data.get("SMTP_PASSWORD", "")
    SMTP_USE_TLS = bool(data.get("SMTP_USE_TLS", True))
    EMAIL_FROM = data.get("EMAIL_FROM", "") or SMTP_USERNAME
    EMAIL_FROM_NAME = data.get("EMAIL_FROM_NAME", "Billing")

    # Create missing tables on startup (off for managed databases)
    AUTO_CREATE_TABLES = bool(data.get("AUTO_CREATE_TABLES", False))
