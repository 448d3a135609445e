# ==================================================================================
# core/config.py — TeamSeats Configuration (Stripe + SendGrid + Pydantic v2)
# ==================================================================================
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import EmailStr, ValidationError
import sys


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------
    # STORAGE
    # ------------------------
    DATABASE_URL: str = "sqlite:///./teamseats.db"

    # ------------------------
    # AUTH (tokens are verified here, issued elsewhere)
    # ------------------------
    SECRET_KEY: str
    ALGORITHM: str = "HS256"

    # ------------------------
    # INVITATION EMAIL (SendGrid)
    # ------------------------
    SENDGRID_API_KEY: str | None = None
    MAIL_FROM: EmailStr | None = None

    # ------------------------
    # PUBLIC URLS
    # ------------------------
    FRONTEND_URL: str = "http://localhost:3000"
    BACKEND_URL: str = "http://localhost:8000"

    # ------------------------
    # SEAT BILLING (Stripe)
    # ------------------------
    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None
    STRIPE_TRIAL_DAYS: int = 14
    STRIPE_TIMEOUT_SECONDS: int = 30

    # ------------------------
    # RUNTIME
    # ------------------------
    ENVIRONMENT: str = "development"  # 'development' | 'production'
    DEBUG: bool = True

    @property
    def IS_PRODUCTION(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    # ------------------------
    # Derived redirect targets
    # ------------------------
    @property
    def STRIPE_SUCCESS_URL(self) -> str:
        """
        Checkout success URL. Stripe substitutes the session id, which the
        backend then uses to link the customer to the team.
        """
        return f"{self.BACKEND_URL}/payments/checkout/complete?session_id={{CHECKOUT_SESSION_ID}}"

    @property
    def STRIPE_CANCEL_URL(self) -> str:
        return f"{self.FRONTEND_URL}/pricing"

    @property
    def PORTAL_RETURN_URL(self) -> str:
        return f"{self.FRONTEND_URL}/dashboard"

    @property
    def INVITATIONS_URL(self) -> str:
        return f"{self.FRONTEND_URL.rstrip('/')}/invitations"


try:
    settings = Settings()
except ValidationError as e:
    print("❌ TeamSeats settings are missing or invalid:")
    print(e)
    sys.exit(1)
