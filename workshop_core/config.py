"""
Configuration for the workshop repair engine.

Loads and validates the environment variables the engine needs at runtime.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env.local
env_path = Path(__file__).parent.parent / '.env.local'
load_dotenv(dotenv_path=env_path)


class Config:
    """Centralized engine configuration."""

    # Environment
    ENVIRONMENT: str = os.getenv('ENVIRONMENT', 'development')

    # API Configuration
    API_HOST: str = os.getenv('API_HOST', '0.0.0.0')
    API_PORT: int = int(os.getenv('API_PORT', '8000'))

    # CORS
    ALLOWED_ORIGINS: list[str] = [
        origin.strip()
        for origin in os.getenv('ALLOWED_ORIGINS', 'http://localhost:3000').split(',')
    ]

    # Logging
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO')

    # Workshop timezone used for calendar-date windows (metrics)
    TIMEZONE: str = os.getenv('TIMEZONE', 'UTC')

    # Persistence backend: "memory" (single process) or "redis"
    STORAGE_BACKEND: str = os.getenv('STORAGE_BACKEND', 'memory')

    # Redis
    REDIS_URL: str = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    REDIS_POOL_MAX_CONNECTIONS: int = int(os.getenv('REDIS_POOL_MAX_CONNECTIONS', '20'))
    REDIS_SOCKET_TIMEOUT: float = float(os.getenv('REDIS_SOCKET_TIMEOUT', '5'))
    REDIS_SOCKET_CONNECT_TIMEOUT: float = float(os.getenv('REDIS_SOCKET_CONNECT_TIMEOUT', '5'))
    REDIS_HEALTH_CHECK_INTERVAL: int = int(os.getenv('REDIS_HEALTH_CHECK_INTERVAL', '30'))

    # Per-job locking
    LOCK_TTL_SECONDS: int = int(os.getenv('LOCK_TTL_SECONDS', '30'))
    LOCK_ACQUIRE_TIMEOUT_SECONDS: float = float(os.getenv('LOCK_ACQUIRE_TIMEOUT_SECONDS', '2'))
    LOCK_POLL_INTERVAL_SECONDS: float = float(os.getenv('LOCK_POLL_INTERVAL_SECONDS', '0.05'))
    BUSY_RETRY_ATTEMPTS: int = int(os.getenv('BUSY_RETRY_ATTEMPTS', '3'))

    # Cache configuration
    CACHE_TTL_SECONDS: int = int(os.getenv('CACHE_TTL_SECONDS', '300'))

    # Workshop defaults, used when a company has no settings row
    DEFAULT_MAX_CONCURRENT_JOBS: int = int(os.getenv('DEFAULT_MAX_CONCURRENT_JOBS', '20'))
    DEFAULT_MAX_JOBS_PER_TECHNICIAN: int = int(os.getenv('DEFAULT_MAX_JOBS_PER_TECHNICIAN', '5'))
    DEFAULT_ESTIMATED_REPAIR_HOURS: int = int(os.getenv('DEFAULT_ESTIMATED_REPAIR_HOURS', '24'))

    @classmethod
    def validate(cls) -> None:
        """
        Validate that the configuration is usable.

        Raises:
            ValueError: If a setting is missing or out of range.
        """
        if cls.STORAGE_BACKEND not in ('memory', 'redis'):
            raise ValueError(
                f"Invalid STORAGE_BACKEND '{cls.STORAGE_BACKEND}'. "
                "Allowed values: memory, redis"
            )

        if cls.STORAGE_BACKEND == 'redis' and not cls.REDIS_URL:
            raise ValueError(
                "Missing required environment variable: REDIS_URL. "
                "Please check your .env.local file."
            )

        if cls.LOCK_ACQUIRE_TIMEOUT_SECONDS <= 0:
            raise ValueError("LOCK_ACQUIRE_TIMEOUT_SECONDS must be positive")

        if cls.BUSY_RETRY_ATTEMPTS < 1:
            raise ValueError("BUSY_RETRY_ATTEMPTS must be at least 1")


# Global configuration instance
config = Config()
