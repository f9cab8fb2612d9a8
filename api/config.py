"""
API configuration and settings management.
"""
import os

class Config:
    """Application configuration."""
    
    # Tracker state
    CONFIG_PATH: str = os.getenv("HUNT_CONFIG", "./config.json")
    OUTPUT_DIR: str = os.getenv("HUNT_OUTPUT_DIR", "./output")
    REPORTS_DIR: str = os.getenv("HUNT_REPORTS_DIR", "./reports")
    
    # API settings
    API_TITLE: str = "Classic Hunt Dashboard"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Read-only view of tracked avto.net listings and reports"
    
    # CORS settings
    CORS_ORIGINS: list = ["*"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list = ["GET"]
    CORS_ALLOW_HEADERS: list = ["*"]
    
    # Listings younger than this many days get a NEW badge (overridden by config.json)
    NEW_LISTING_DAYS: int = int(os.getenv("NEW_LISTING_DAYS", "3"))
    
    # Pagination defaults
    DEFAULT_API_LIMIT: int = 50
    MAX_API_LIMIT: int = 500
    
    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    
    def validate(self) -> None:
        """Validate configuration on startup."""
        if not os.path.exists(self.CONFIG_PATH):
            raise FileNotFoundError(f"Configuration file not found: {self.CONFIG_PATH}")

# Global config instance
config = Config()
