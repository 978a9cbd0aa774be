import os

from dotenv import load_dotenv

from src.shared.utils import get_logger

logger = get_logger(__name__)


load_dotenv()


class Settings:
    """Application configuration settings."""

    # Environment
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
    DEPLOYMENT = os.getenv("DEPLOYMENT", "cloud")

    # Order store
    STORE_BACKEND = os.getenv("STORE_BACKEND", "firestore")
    GOOGLE_CLOUD_PROJECT = os.getenv("GOOGLE_CLOUD_PROJECT", None)
    FIRESTORE_BATCH_LIMIT = 500

    # Assignment engine
    CONFLICT_WINDOW_MINUTES = int(os.getenv("CONFLICT_WINDOW_MINUTES", "60"))
    SELECTION_POLICY = os.getenv("SELECTION_POLICY", "conflict_aware")
    ASSIGNMENT_TRIGGER = os.getenv("ASSIGNMENT_TRIGGER", "created")
    ACTIVATION_BATCH_SIZE = int(os.getenv("ACTIVATION_BATCH_SIZE", "1"))
    ASSIGNMENT_MAX_ATTEMPTS = int(os.getenv("ASSIGNMENT_MAX_ATTEMPTS", "5"))
    ASSIGNMENT_BACKOFF_SECONDS = float(os.getenv("ASSIGNMENT_BACKOFF_SECONDS", "0.1"))

    # Notifications
    ADMIN_PHONE_NUMBER = os.getenv("ADMIN_PHONE_NUMBER", None)
    SMS_COUNTRY_CODE = os.getenv("SMS_COUNTRY_CODE", "+91")
    TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID", None)
    TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN", None)
    TWILIO_FROM_NUMBER = os.getenv("TWILIO_FROM_NUMBER", None)
    TWILIO_TIMEOUT_SECONDS = float(os.getenv("TWILIO_TIMEOUT_SECONDS", "10"))
    RESTAURANT_NOTICE_LEAD_MINUTES = int(os.getenv("RESTAURANT_NOTICE_LEAD_MINUTES", "30"))
    RUNNER_NOTICE_LEAD_MINUTES = int(os.getenv("RUNNER_NOTICE_LEAD_MINUTES", "15"))

    # Scheduled jobs (configured on Cloud Scheduler, kept here for reference)
    JOB_TIMEZONE = os.getenv("JOB_TIMEZONE", "Asia/Kolkata")
    DAILY_RESET_CRON = "0 0 * * *"
    MONTHLY_RESET_CRON = "0 0 1 * *"


settings = Settings()

if settings.SELECTION_POLICY not in ("conflict_aware", "least_busy"):
    logger.warning(
        f"Unknown SELECTION_POLICY '{settings.SELECTION_POLICY}', using conflict_aware"
    )
    settings.SELECTION_POLICY = "conflict_aware"

if settings.ASSIGNMENT_TRIGGER not in ("created", "ready"):
    logger.warning(
        f"Unknown ASSIGNMENT_TRIGGER '{settings.ASSIGNMENT_TRIGGER}', using created"
    )
    settings.ASSIGNMENT_TRIGGER = "created"
