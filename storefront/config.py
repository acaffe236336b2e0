"""
Configuration settings for the storefront order service
"""
from pydantic_settings import BaseSettings
from typing import Any, Dict, List


class Settings(BaseSettings):
    """Application settings"""
    
    # Database
    DATABASE_URL: str = "sqlite:///./storefront.db"
    
    # Service
    SERVICE_NAME: str = "storefront-orders"
    SERVICE_PORT: int = 8000
    LOG_LEVEL: str = "INFO"
    
    # Startup retries while the database is unreachable
    MAX_RETRIES: int = 3
    RETRY_DELAY: float = 1.0
    
    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8080"
    ]
    
    # Pagination
    ITEMS_PER_PAGE: int = 15
    MAX_ITEMS_PER_PAGE: int = 100
    RECENT_ORDERS_LIMIT: int = 5
    
    # Bearer token -> actor ({"user_id": int, "is_manager": bool})
    API_TOKENS: Dict[str, Dict[str, Any]] = {
        "manager_token_123": {"user_id": 1, "is_manager": True},
        "user_token_456": {"user_id": 2, "is_manager": False},
    }
    
    # Return debited stock to products when an order is cancelled
    RESTOCK_ON_CANCEL: bool = True
    
    class Config:
        env_file = ".env"
        case_sensitive = True


# Create global settings instance
settings = Settings()
