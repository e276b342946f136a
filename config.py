import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as adslot.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "adslot.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session token is read from "Authorization: Bearer <token>" or this cookie
    AUTH_HEADER_PREFIX = "Bearer"
    AUTH_COOKIE_NAME = "adslot_session"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Payment gateway (Razorpay order/verify protocol)
    RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID")
    RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET")
    PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "INR")
    PAYMENT_RECEIPT_MAX_LENGTH = 40     # gateway limit on receipt length
    # local development only; the stub still needs RAZORPAY_KEY_SECRET
    PAYMENT_GATEWAY_USE_STUB = os.getenv("PAYMENT_GATEWAY_USE_STUB", "false").lower() == "true"

    # Booking policy
    BOOKING_ALLOW_PAST_SLOTS = False

    # Email (SMTP)
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

    # Basic app settings
    DEBUG = False
