from datetime import timedelta
import os
from dotenv import load_dotenv

load_dotenv()
class Config:
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///tribal_fashion.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=7)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000")

    MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.gmail.com")
    MAIL_PORT = int(os.getenv("MAIL_PORT", 587))
    MAIL_USE_TLS = True
    MAIL_USERNAME = os.getenv("USERNAME_FOR_EMAIL")
    MAIL_PASSWORD = os.getenv("PASSWORD_FOR_EMAIL")
    MAIL_DEFAULT_SENDER = os.getenv("USERNAME_FOR_EMAIL")

    RAZORPAY_KEY_ID = os.environ.get("RAZORPAY_KEY_ID")
    RAZORPAY_KEY_SECRET = os.environ.get("RAZORPAY_KEY_SECRET")
    RAZORPAY_API_URL = os.environ.get("RAZORPAY_API_URL", "https://api.razorpay.com/v1")
    RAZORPAY_TIMEOUT = 10
    DEFAULT_CURRENCY = "INR"
    DEFAULT_SHIPPING_COUNTRY = "India"

    DELIVERY_TEAM_EMAIL = os.environ.get("DELIVERY_TEAM_EMAIL", "delivery@tribalfashion.com")
    # probability that a simulated channel reports itself unavailable
    NOTIFICATION_FAILURE_RATES = {
        "sms": 0.10,
        "email": 0.05,
        "push": 0.15,
        "whatsapp": 0.20,
    }
    NOTIFICATIONS_EAGER = False

    SWAGGER = {
        "title": "Tribal Fashion API",
        "uiversion": 3,
    }


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length"
    RAZORPAY_KEY_ID = "rzp_test_key"
    RAZORPAY_KEY_SECRET = "test_razorpay_secret"
    RAZORPAY_API_URL = "https://api.razorpay.com/v1"
    MAIL_DEFAULT_SENDER = "orders@tribalfashion.com"
    MAIL_SUPPRESS_SEND = True
    DELIVERY_TEAM_EMAIL = "delivery@tribalfashion.com"
    FRONTEND_URL = "http://localhost:3000"
    NOTIFICATION_FAILURE_RATES = {
        "sms": 0.0,
        "email": 0.0,
        "push": 0.0,
        "whatsapp": 0.0,
    }
    NOTIFICATIONS_EAGER = True
