"""
Application configuration using Pydantic settings.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Sentinel Hub Configuration
    sentinel_hub_base_url: str = Field(
        default="https://sh.dataspace.copernicus.eu",
        description="Base URL for the Sentinel Hub catalog and process APIs"
    )
    sentinel_hub_timeout: float = Field(
        default=60.0,
        description="Timeout in seconds for a single Sentinel Hub request"
    )

    # Retry Configuration
    max_retry_attempts: int = Field(
        default=3,
        description="Maximum number of retry attempts for API calls"
    )
    retry_backoff_multiplier: int = Field(
        default=1,
        description="Multiplier for exponential backoff"
    )
    retry_min_wait: int = Field(
        default=1,
        description="Minimum wait time in seconds between retries"
    )
    retry_max_wait: int = Field(
        default=10,
        description="Maximum wait time in seconds between retries"
    )

    # Acquisition window
    acquisition_lookback_years: int = Field(
        default=3,
        description="Number of past years analysed in addition to the current one"
    )
    season_start: str = Field(
        default="06-01",
        description="First day (MM-DD) of the seasonal acquisition window"
    )
    season_end: str = Field(
        default="08-31",
        description="Last day (MM-DD) of the seasonal acquisition window"
    )
    season_complete_month: int = Field(
        default=9,
        description="Month from which the current year's season counts as elapsed"
    )
    max_cloud_cover: float = Field(
        default=30.0,
        description="Maximum cloud cover percentage accepted from discovery"
    )
    discovery_limit: int = Field(
        default=100,
        description="Maximum number of catalog items requested per year"
    )

    # Upstream rate limiting
    request_delay_seconds: float = Field(
        default=1.0,
        description="Delay after every per-date raster request"
    )
    year_delay_seconds: float = Field(
        default=3.0,
        description="Delay after every processed year"
    )

    # Series policy
    rolling_window: int = Field(
        default=7,
        description="Trailing window size for biomass and index smoothing"
    )
    forested_vegetation_percent: float = Field(
        default=30.0,
        description="Vegetation percent above which an acquisition counts as forested"
    )
    low_vegetation_fraction: float = Field(
        default=0.5,
        description="Fraction of forested samples below which a low-vegetation advisory is raised"
    )
    water_index_threshold: float = Field(
        default=0.1,
        description="Mean index below which an acquisition is flagged as water"
    )
    water_sample_fraction: float = Field(
        default=0.7,
        description="Fraction of water samples above which a water-body advisory is raised"
    )
    low_coverage_percent: float = Field(
        default=50.0,
        description="Pixel coverage percent below which an acquisition gets an advisory"
    )

    # Adaptive resolution (footprint in meters -> pixels)
    resolution_breakpoints: list[tuple[float, int]] = Field(
        default=[(1000.0, 50), (5000.0, 100), (20000.0, 200)],
        description="Ascending (max footprint meters, grid pixels) pairs"
    )
    max_resolution: int = Field(
        default=300,
        description="Grid size used for footprints beyond the last breakpoint"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins (use specific origins in production)"
    )

    # Rate Limiting
    rate_limit_requests: int = Field(
        default=10,
        description="Maximum analysis requests per minute per client"
    )

    # Application Settings
    app_name: str = Field(
        default="Forest Biomass Analyzer",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode"
    )

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)


# Global settings instance
settings = Settings()
