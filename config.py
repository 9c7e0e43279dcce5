import os
import yaml

ROOT_PATH = os.path.dirname(__file__)
CONFIG_FILE_PATH = os.path.join(ROOT_PATH, "env.yaml")

if os.path.exists(CONFIG_FILE_PATH):
    with open(CONFIG_FILE_PATH, "r") as r_file:
        data = yaml.safe_load(r_file) or dict()
else:
    data = dict()


class ApplicationConfig:
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./billing.db")
    API_PREFIX = data.get("API_PREFIX", "")
    API_PORT = data.get("API_PORT", 8000)
    API_HOST = data.get("API_HOST", "0.0.0.0")
    CORS_ORIGINS = data.get("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = data.get("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")
    ENABLE_LOGGING_MIDDLEWARE = bool(data.get("ENABLE_LOGGING_MIDDLEWARE", 1))

    # Payment reconciliation
    COMMIT_TIMEOUT_SECONDS = float(data.get("COMMIT_TIMEOUT_SECONDS", 10.0))
    INVOICE_DUE_DAYS = int(data.get("INVOICE_DUE_DAYS", 14))

    # Overdue sweep
    OVERDUE_SWEEP_ENABLED = bool(data.get("OVERDUE_SWEEP_ENABLED", True))
    OVERDUE_SWEEP_INTERVAL_SECONDS = data.get("OVERDUE_SWEEP_INTERVAL_SECONDS", 3600)  # Hourly

    # Payment audit
    PAYMENT_AUDIT_ENABLED = bool(data.get("PAYMENT_AUDIT_ENABLED", True))
    PAYMENT_AUDIT_INTERVAL_SECONDS = data.get("PAYMENT_AUDIT_INTERVAL_SECONDS", 86400)  # Daily
    PAYMENT_AUDIT_WEBHOOK = data.get("PAYMENT_AUDIT_WEBHOOK", None)
