from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Nearby Businesses API"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 3001
    # CORS: "*" for dev; in production set to comma-separated origins, e.g. "https://app.example.com,https://admin.example.com"
    cors_origins: str = "*"
    rate_limit: str = "100/minute"
    businesses_db_path: str = "data/businesses.db"  # Path relative to project root, or absolute (run scripts/load_businesses.py first)

    # Proximity search
    nearby_max_radius_km: float = 100.0
    nearby_strategy: str = "two_pass"  # "single" or "two_pass"
    nearby_two_pass_threshold_km: float = 10.0  # Two-pass only runs above this radius
    nearby_wide_margin: float = 0.2  # First pass reads bounds for radius * (1 + margin)
    nearby_narrow_margin: float = 0.2  # Second pass reads bounds for radius * (1 - margin)
    nearby_timeout_seconds: float = 10.0  # Deadline for all range queries of one search


def get_settings() -> Settings:
    return Settings()
