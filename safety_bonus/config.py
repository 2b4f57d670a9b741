import os
import logging
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Database configuration
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./driver_safety.db")

# Dates for events and truck history are reckoned in the depot's local zone
LOCAL_TIMEZONE = os.getenv("LOCAL_TIMEZONE", "America/Winnipeg")

# Client configuration
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000/api")
API_TIMEOUT_SECONDS = float(os.getenv("API_TIMEOUT_SECONDS", "10"))
MAX_PROFILE_PIC_BYTES = int(os.getenv("MAX_PROFILE_PIC_BYTES", str(1024 * 1024)))

# Risk classification (sum of a driver's bonus scores)
LOW_RISK_MAX = int(os.getenv("LOW_RISK_MAX", "5"))
MEDIUM_RISK_MAX = int(os.getenv("MEDIUM_RISK_MAX", "10"))
DRIVER_WARNING_THRESHOLD = int(os.getenv("DRIVER_WARNING_THRESHOLD", "5"))

# Dashboard configuration
TREND_WEEKS = int(os.getenv("TREND_WEEKS", "12"))
TREND_WINDOW_DAYS = int(os.getenv("TREND_WINDOW_DAYS", "90"))
TREND_TOP_CATEGORIES = int(os.getenv("TREND_TOP_CATEGORIES", "5"))
RECENT_ACTIVITY_LIMIT = int(os.getenv("RECENT_ACTIVITY_LIMIT", "5"))

# Logging configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
LOG_FILE = os.getenv("LOG_FILE", "driver_safety.log")

# Development configuration
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
ENABLE_CORS = os.getenv("ENABLE_CORS", "true").lower() == "true"

class Config:
    """Configuration class with runtime overrides."""
    
    def __init__(self):
        self.database_url = DATABASE_URL
        self.local_timezone = LOCAL_TIMEZONE
        
        # Client settings
        self.api_base_url = API_BASE_URL
        self.api_timeout_seconds = API_TIMEOUT_SECONDS
        self.max_profile_pic_bytes = MAX_PROFILE_PIC_BYTES
        
        # Risk thresholds
        self.low_risk_max = LOW_RISK_MAX
        self.medium_risk_max = MEDIUM_RISK_MAX
        self.driver_warning_threshold = DRIVER_WARNING_THRESHOLD
        
        # Dashboard
        self.trend_weeks = TREND_WEEKS
        self.trend_window_days = TREND_WINDOW_DAYS
        self.trend_top_categories = TREND_TOP_CATEGORIES
        self.recent_activity_limit = RECENT_ACTIVITY_LIMIT
        
        # Logging
        self.log_level = LOG_LEVEL
        self.log_format = LOG_FORMAT
        self.log_file = LOG_FILE
        
        # Development
        self.debug = DEBUG
        self.enable_cors = ENABLE_CORS
    
    def update_risk_thresholds(self,
                               low_risk_max: Optional[int] = None,
                               medium_risk_max: Optional[int] = None,
                               driver_warning_threshold: Optional[int] = None):
        """Update risk thresholds at runtime."""
        if low_risk_max is not None:
            self.low_risk_max = low_risk_max
        if medium_risk_max is not None:
            self.medium_risk_max = medium_risk_max
        if driver_warning_threshold is not None:
            self.driver_warning_threshold = driver_warning_threshold
        if self.low_risk_max > self.medium_risk_max:
            raise ValueError("low_risk_max must not exceed medium_risk_max")
    
    def get_risk_config(self) -> dict:
        """Get risk thresholds as dictionary."""
        return {
            "low_risk_max": self.low_risk_max,
            "medium_risk_max": self.medium_risk_max,
            "driver_warning_threshold": self.driver_warning_threshold
        }
    
    def get_dashboard_config(self) -> dict:
        """Get dashboard configuration as dictionary."""
        return {
            "trend_weeks": self.trend_weeks,
            "trend_window_days": self.trend_window_days,
            "trend_top_categories": self.trend_top_categories,
            "recent_activity_limit": self.recent_activity_limit
        }

# Global configuration instance
config = Config()

def local_now() -> datetime:
    """Current time in the configured local time zone."""
    return datetime.now(ZoneInfo(config.local_timezone))

def local_today() -> date:
    return local_now().date()

def setup_logging():
    """Setup logging configuration."""
    handlers = [logging.StreamHandler()]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format=config.log_format,
        handlers=handlers
    )
    
    # Set specific logger levels
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("fastapi").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    
    return logging.getLogger(__name__)

# Initialize logger
logger = setup_logging()
