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
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./loyalty.db")
    DB_CREATE_TABLES = bool(data.get("DB_CREATE_TABLES", True))  # Run create_all on API startup
    API_PREFIX = data.get("API_PREFIX", "/api")
    API_PORT = data.get("API_PORT", 8000)
    API_HOST = data.get("API_HOST", "0.0.0.0")
    CORS_ORIGINS = data.get("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = data.get("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")

    # Order/coupon platform
    SEVENCLOUD_BASE_URL = data.get("SEVENCLOUD_BASE_URL", "https://sz.sunzee.com.cn")
    SEVENCLOUD_USERNAME = data.get("SEVENCLOUD_USERNAME", "")
    SEVENCLOUD_PASSWORD = data.get("SEVENCLOUD_PASSWORD", "")
    SEVENCLOUD_TIMEOUT_SECONDS = data.get("SEVENCLOUD_TIMEOUT_SECONDS", 15.0)

    # Payment platform
    STRIPE_SECRET_KEY = data.get("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET = data.get("STRIPE_WEBHOOK_SECRET", "")
    STRIPE_CURRENCY = data.get("STRIPE_CURRENCY", "usd")

    # Recharge policy (amounts in cents)
    RECHARGE_MIN_AMOUNT = data.get("RECHARGE_MIN_AMOUNT", 500)
    RECHARGE_MAX_AMOUNT = data.get("RECHARGE_MAX_AMOUNT", 100000)
    RECHARGE_ALLOW_NON_TIER_AMOUNTS = bool(data.get("RECHARGE_ALLOW_NON_TIER_AMOUNTS", True))

    # Rewards
    ORDER_STAMPS_REWARD = data.get("ORDER_STAMPS_REWARD", 100)  # $0.50 at 200 stamps per $1
    ORDER_CASHBACK_ENABLED = bool(data.get("ORDER_CASHBACK_ENABLED", True))
    REFERRER_REQUIRES_PAID_TIER = bool(data.get("REFERRER_REQUIRES_PAID_TIER", True))
    REGISTRATION_WELFARE_AMOUNT = data.get("REGISTRATION_WELFARE_AMOUNT", 0)  # 0 disables the gift

    # Upstream retry policy
    UPSTREAM_MAX_ATTEMPTS = data.get("UPSTREAM_MAX_ATTEMPTS", 3)
    UPSTREAM_BACKOFF_SECONDS = data.get("UPSTREAM_BACKOFF_SECONDS", 1.0)
    UPSTREAM_BACKOFF_MULTIPLIER = data.get("UPSTREAM_BACKOFF_MULTIPLIER", 2.0)
    UPSTREAM_MAX_BACKOFF_SECONDS = data.get("UPSTREAM_MAX_BACKOFF_SECONDS", 10.0)

    # External sync
    SYNC_ENABLED = bool(data.get("SYNC_ENABLED", True))
    SYNC_RUN_IN_API = bool(data.get("SYNC_RUN_IN_API", False))
    SYNC_INTERVAL_SECONDS = data.get("SYNC_INTERVAL_SECONDS", 60)
    SYNC_FULL_EVERY_CYCLES = data.get("SYNC_FULL_EVERY_CYCLES", 60)  # Rolling 24h pass roughly hourly
    SYNC_ORDER_PAGE_SIZE = data.get("SYNC_ORDER_PAGE_SIZE", 100)
    SYNC_COUPON_PAGE_SIZE = data.get("SYNC_COUPON_PAGE_SIZE", 20)
    SYNC_INITIAL_LOOKBACK_HOURS = data.get("SYNC_INITIAL_LOOKBACK_HOURS", 24)
    SYNC_FULL_WINDOW_HOURS = data.get("SYNC_FULL_WINDOW_HOURS", 24)
    SYNC_LEASE_TTL_SECONDS = data.get("SYNC_LEASE_TTL_SECONDS", 900)

    # Ledger reconciliation
    RECONCILIATION_ENABLED = bool(data.get("RECONCILIATION_ENABLED", True))
    RECONCILIATION_INTERVAL_SECONDS = data.get("RECONCILIATION_INTERVAL_SECONDS", 86400)  # Daily

    # Membership expiry
    MEMBERSHIP_EXPIRY_INTERVAL_SECONDS = data.get("MEMBERSHIP_EXPIRY_INTERVAL_SECONDS", 6 * 3600)

    # Birthday rewards and monthly card coupons; each run is idempotent per day
    SCHEDULED_REWARDS_INTERVAL_SECONDS = data.get("SCHEDULED_REWARDS_INTERVAL_SECONDS", 3600)

    # Operational alerts (partial redemptions, sync failures, ledger discrepancies)
    OPERATIONS_NOTIFICATION_WEBHOOK = data.get("OPERATIONS_NOTIFICATION_WEBHOOK", None)
