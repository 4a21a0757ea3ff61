from pydantic_settings import BaseSettings, SettingsConfigDict


class TrackingSettings(BaseSettings):
    # Ephemeral location cache
    LOCATION_TTL_SECONDS: int = 60
    SNAPSHOT_INTERVAL_SECONDS: int = 300  # 5 minutes between durable snapshots
    SNAPSHOT_SWEEP_INTERVAL_SECONDS: int = 60
    SNAPSHOT_SWEEP_IN_API: bool = True  # False when Celery beat runs the sweep

    # GPS submission limits (sliding window)
    VEHICLE_MAX_UPDATES: int = 10
    DRIVER_MAX_UPDATES: int = 20
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    # Geofence thresholds in meters
    GEOFENCE_APPROACHING_METERS: float = 500.0
    GEOFENCE_ARRIVAL_METERS: float = 100.0
    GEOFENCE_DEPARTURE_METERS: float = 150.0
    GEOFENCE_STATE_TTL_SECONDS: int = 86400

    # Trip progress / ETA
    TRIP_PROGRESS_TTL_SECONDS: int = 60
    SPEED_BUFFER_SIZE: int = 60
    SPEED_HISTORY_TTL_SECONDS: int = 86400
    FALLBACK_SPEED_KMH: float = 40.0

    # "inline" runs boarding updates in-process, "celery" queues them
    STOP_EVENT_DISPATCH: str = "inline"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class CelerySettings(BaseSettings):
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"
    CELERY_TASK_TIME_LIMIT: int = 300  # 5 minutes
    CELERY_TASK_SOFT_TIME_LIMIT: int = 270  # 4.5 minutes

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class Settings(BaseSettings):
    # Database - No default password for security
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""  # Required via .env
    POSTGRES_DB: str = "school_transport_dev"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432

    # Redis (location cache, rate-limit windows, geofence state, pub/sub)
    REDIS_URL: str = "redis://localhost:6379/1"
    REDIS_SOCKET_TIMEOUT: float = 1.0
    KV_STORE_BACKEND: str = "redis"  # redis | memory
    EVENT_PUBLISHER_BACKEND: str = "redis"  # redis | memory

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False  # Default to False for security

    # Frontend
    FRONTEND_URL: str = "http://localhost:3000"

    # Tracking settings (nested)
    tracking: TrackingSettings = TrackingSettings()

    # Celery settings (nested)
    celery: CelerySettings = CelerySettings()

    @property
    def DATABASE_URL(self) -> str:
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    def validate_production_settings(self) -> None:
        """Validate critical settings for production environment.

        Call this during application startup.
        Raises ValueError if production settings are invalid.
        """
        errors = []

        if self.is_production:
            # Check POSTGRES_PASSWORD
            if not self.POSTGRES_PASSWORD or self.POSTGRES_PASSWORD == "postgres":
                errors.append(
                    "POSTGRES_PASSWORD must be set to a secure value in production"
                )

            # The in-memory backends are per-process and lose state across workers
            if self.KV_STORE_BACKEND != "redis":
                errors.append("KV_STORE_BACKEND must be 'redis' in production")

            if self.tracking.STOP_EVENT_DISPATCH not in ("inline", "celery"):
                errors.append("STOP_EVENT_DISPATCH must be 'inline' or 'celery'")

            # Check DEBUG is disabled
            if self.DEBUG:
                errors.append("DEBUG must be False in production")

        if errors:
            raise ValueError(
                "Production configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            )

    def validate_development_settings(self) -> None:
        """Set sensible defaults for development if not configured."""
        # Use default password for development if not set
        if not self.POSTGRES_PASSWORD:
            self.POSTGRES_PASSWORD = "postgres"
            print("WARNING: Using default POSTGRES_PASSWORD for development")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Create settings instance
settings = Settings()

# Validate based on environment
if settings.is_production:
    settings.validate_production_settings()
else:
    settings.validate_development_settings()
