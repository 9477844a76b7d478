from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from pydantic_settings import BaseSettings
import os
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./airview.db")
    debug: bool = os.getenv("DEBUG", "false").lower() == "true"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    qingping_api_base: str = os.getenv("QINGPING_API_BASE", "https://apis.cleargrass.com")
    qingping_oauth_url: str = os.getenv("QINGPING_OAUTH_URL", "https://oauth.cleargrass.com/oauth2/token")
    http_timeout_seconds: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "15"))

    scheduler_enabled: bool = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"
    token_refresh_minutes: int = int(os.getenv("TOKEN_REFRESH_MINUTES", "90"))
    poll_interval_minutes: int = int(os.getenv("POLL_INTERVAL_MINUTES", "5"))
    retention_cleanup_hour: int = int(os.getenv("RETENTION_CLEANUP_HOUR", "3"))

settings = Settings()

engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if "sqlite" in settings.database_url else {}
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
