from __future__ import annotations

import os
from dataclasses import dataclass

@dataclass(frozen=True)
class Settings:
    # AWS
    aws_region: str = os.environ.get("AWS_REGION", "us-east-1")

    # DynamoDB tables
    users_table_name: str = os.environ.get("USERS_TABLE_NAME", "users")
    content_table_name: str = os.environ.get("CONTENT_TABLE_NAME", "content")
    subscriptions_table_name: str = os.environ.get("SUBSCRIPTIONS_TABLE_NAME", "subscriptions")
    follows_table_name: str = os.environ.get("FOLLOWS_TABLE_NAME", "follows")
    transactions_table_name: str = os.environ.get("TRANSACTIONS_TABLE_NAME", "transactions")
    billing_events_table_name: str = os.environ.get("BILLING_EVENTS_TABLE_NAME", "billing_events")

    # TTL
    ddb_ttl_attr: str = os.environ.get("DDB_TTL_ATTR", "ttl_epoch")

    # Sessions
    session_secret: str = os.environ.get("SESSION_SECRET", "dev-session-secret")
    session_ttl_seconds: int = int(os.environ.get("SESSION_TTL_SECONDS", str(30 * 24 * 3600)))
    password_min_length: int = int(os.environ.get("PASSWORD_MIN_LENGTH", "6"))

    audit_log_enabled: bool = os.environ.get("AUDIT_LOG_ENABLED", "1") not in ("0", "false", "False")
    metrics_enabled: bool = os.environ.get("METRICS_ENABLED", "1") not in ("0", "false", "False")

    # Stripe
    stripe_secret_key: str = os.environ.get("STRIPE_SECRET_KEY", "")
    stripe_publishable_key: str = os.environ.get("STRIPE_PUBLISHABLE_KEY", "")
    stripe_webhook_secret: str = os.environ.get("STRIPE_WEBHOOK_SECRET", "")
    stripe_default_currency: str = os.environ.get("STRIPE_DEFAULT_CURRENCY", "usd").lower()
    stripe_product_name: str = os.environ.get("STRIPE_PRODUCT_NAME", "Creator Subscription")
    webhook_event_ttl_seconds: int = int(os.environ.get("WEBHOOK_EVENT_TTL_SECONDS", str(7 * 24 * 3600)))

    # Platform economics
    platform_fee_bps: int = int(os.environ.get("PLATFORM_FEE_BPS", "1000"))
    subscription_window_days: int = int(os.environ.get("SUBSCRIPTION_WINDOW_DAYS", "30"))
    min_subscription_price_cents: int = int(os.environ.get("MIN_SUBSCRIPTION_PRICE_CENTS", "100"))

    # Media storage
    media_bucket: str = os.environ.get("MEDIA_BUCKET", "")
    media_public_base_url: str = os.environ.get("MEDIA_PUBLIC_BASE_URL", "").rstrip("/")
    use_local_storage: bool = os.environ.get("USE_LOCAL_STORAGE", "0") not in ("0", "false", "False")
    local_media_dir: str = os.environ.get("LOCAL_MEDIA_DIR", "uploads")
    public_base_url: str = os.environ.get("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")

    # Server
    host: str = os.environ.get("HOST", "0.0.0.0")
    port: int = int(os.environ.get("PORT", "8000"))


S = Settings()
