import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    API_KEY: str = os.getenv("API_KEY", "")
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")

    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    RQ_QUEUE_NAME: str = os.getenv("RQ_QUEUE_NAME", "intake")

    # External record sink
    SINK_BASE_URL: str = os.getenv("SINK_BASE_URL", "")
    SINK_RECORD_PATH: str = os.getenv("SINK_RECORD_PATH", "/wp-json/intake/v1/records")
    SINK_HEALTH_PATH: str = os.getenv("SINK_HEALTH_PATH", "/wp-json/intake/v1/health")
    SINK_ACTIVITY_PATH: str = os.getenv("SINK_ACTIVITY_PATH", "/wp-json/intake/v1/activity")
    SINK_USERNAME: str = os.getenv("SINK_USERNAME", "")
    SINK_APP_PASSWORD: str = os.getenv("SINK_APP_PASSWORD", "")
    SINK_TIMEOUT_SEC: float = float(os.getenv("SINK_TIMEOUT_SEC", "10"))

    # Submission retry policy: delay before retry n is n * base
    SUBMIT_MAX_ATTEMPTS: int = int(os.getenv("SUBMIT_MAX_ATTEMPTS", "3"))
    SUBMIT_BACKOFF_BASE_SEC: float = float(os.getenv("SUBMIT_BACKOFF_BASE_SEC", "2.0"))
    # Complaint delivery failures are shown to the user as success
    MASK_COMPLAINT_FAILURES: bool = os.getenv("MASK_COMPLAINT_FAILURES", "true").lower() == "true"

    # Conversation
    FIELD_MAX_ATTEMPTS: int = int(os.getenv("FIELD_MAX_ATTEMPTS", "3"))
    SESSION_TTL_SEC: int = int(os.getenv("SESSION_TTL_SEC", str(24 * 3600)))
    SWEEP_INTERVAL_SEC: int = int(os.getenv("SWEEP_INTERVAL_SEC", str(30 * 60)))

    # Per-user serialization. The holder refreshes its lease before every delivery attempt.
    USER_LOCK_TTL_MS: int = int(os.getenv("USER_LOCK_TTL_MS", "60000"))
    USER_LOCK_WAIT_SEC: float = float(os.getenv("USER_LOCK_WAIT_SEC", "45"))
    # Events allowed to wait behind the holder; more are answered "busy" at once
    USER_LOCK_MAX_WAITING: int = int(os.getenv("USER_LOCK_MAX_WAITING", "2"))

    # Risk engine
    DEFAULT_BLOCK_MINUTES: int = int(os.getenv("DEFAULT_BLOCK_MINUTES", "60"))
    # 0 disables policy blocking; blocks are then operator-only
    RISK_AUTO_BLOCK_SCORE: int = int(os.getenv("RISK_AUTO_BLOCK_SCORE", "0"))

    ACTIVITY_NOTIFICATIONS_ENABLED: bool = os.getenv("ACTIVITY_NOTIFICATIONS_ENABLED", "true").lower() == "true"

    # Security & Privacy
    ENABLE_PII_REDACTION: bool = os.getenv("ENABLE_PII_REDACTION", "true").lower() == "true"
    ADMIN_RBAC_ENABLED: bool = os.getenv("ADMIN_RBAC_ENABLED", "true").lower() == "true"
    ADMIN_API_KEY: str = os.getenv("ADMIN_API_KEY", "")

settings = Settings()
