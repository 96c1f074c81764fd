"""
Application configuration settings
"""
from pydantic_settings import BaseSettings
from pathlib import Path
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    PROJECT_NAME: str = "Barangay Document Request API"
    VERSION: str = "1.0.0"
    DATABASE_URL: str = "sqlite+aiosqlite:///./barangay.db"
    DB_ECHO: bool = False
    LOG_LEVEL: str = "INFO"

    # Storage
    TEMPLATES_DIR: Path = Path("./templates")
    GENERATED_DIR: Path = Path("./generated-documents")
    MAX_TEMPLATE_SIZE: int = 5 * 1024 * 1024
    ALLOWED_TEMPLATE_EXTENSIONS: set = {".docx"}

    # Jurisdiction printed on generated documents
    BARANGAY_NAME: str = "Bagong Barrio"
    CITY_NAME: str = "Caloocan City"

    # SMS notifications
    SMS_ENABLED: bool = True
    SMS_PROVIDER: str = "mock"  # mock, semaphore, iprogsms, twilio
    SMS_TIMEOUT_SECONDS: float = 10.0
    SEMAPHORE_API_KEY: Optional[str] = None
    SEMAPHORE_BASE_URL: str = "https://api.semaphore.co/api/v4/messages"
    SEMAPHORE_SENDER_NAME: str = "BRGYWEB"
    IPROG_SMS_API_TOKEN: Optional[str] = None
    IPROG_SMS_BASE_URL: str = "https://sms.iprogtech.com/api/v1/sms_messages"
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_PHONE_NUMBER: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
settings.TEMPLATES_DIR.mkdir(parents=True, exist_ok=True)
settings.GENERATED_DIR.mkdir(parents=True, exist_ok=True)
