"""Configuration and settings for trip planning."""

from typing import Self

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TripSettings(BaseSettings):
    """Trip simulation and sweep configuration."""

    model_config = SettingsConfigDict(env_prefix="TRIP_")

    # Default paddling speed through the water (knots)
    base_speed_knots: float = 3.0

    # Prediction resolutions (minutes)
    coarse_resolution_minutes: int = 30  # Display and sweep horizon
    fine_resolution_minutes: int = 5  # Simulation increment

    # Duration of a pause waypoint (minutes)
    pause_minutes: float = 30.0

    # Nearest-station cache capacity (entries)
    nn_cache_size: int = 1024 * 1024

    # Fraction of fastest departures kept by a sweep
    sweep_quantile: float = 0.2

    # Daylight window for the daytime filter (local hours)
    daytime_start_hour: int = 8  # Leave no earlier than
    daytime_end_hour: int = 21  # Arrive before

    @model_validator(mode="after")
    def check_resolutions(self) -> Self:
        """Coarse resolution must be a whole multiple of the fine one."""
        if self.coarse_resolution_minutes % self.fine_resolution_minutes:
            raise ValueError(
                "coarse_resolution_minutes must be a multiple of fine_resolution_minutes"
            )
        return self


class StudyAreaSettings(BaseSettings):
    """Geographic extent of the planning area."""

    model_config = SettingsConfigDict(env_prefix="AREA_")

    # New York Harbor and approaches
    lat_min: float = 39.0
    lat_max: float = 42.0
    lon_min: float = -75.0
    lon_max: float = -73.0

    # Tide reference station (The Battery, NY)
    reference_station_id: str = "8518750"

    # Prediction horizon fetched from the start date (hours) - two months
    horizon_hours: int = 24 * 30 * 2

    @property
    def lat_range(self) -> tuple[float, float]:
        return (self.lat_min, self.lat_max)

    @property
    def lon_range(self) -> tuple[float, float]:
        return (self.lon_min, self.lon_max)


class DataSourceSettings(BaseSettings):
    """External data source configuration."""

    model_config = SettingsConfigDict()

    # NOAA CO-OPS APIs
    noaa_metadata_url: str = "https://api.tidesandcurrents.noaa.gov/mdapi/prod/webapi"
    noaa_datagetter_url: str = "https://api.tidesandcurrents.noaa.gov/api/prod/datagetter"
    application_name: str = "KayakNav"

    # The NOAA API is slow and returns 504s under many concurrent requests.
    # The proxy must accept the url-encoded target as an `apiurl` parameter.
    use_api_proxy: bool = False
    api_proxy_url: str = "https://kayaknav.com/proxy"

    # HTTP timeout (seconds)
    request_timeout_s: float = 30.0


class Settings(BaseSettings):
    """Master configuration aggregating all subsystems."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    trip: TripSettings = Field(default_factory=TripSettings)
    area: StudyAreaSettings = Field(default_factory=StudyAreaSettings)
    data_sources: DataSourceSettings = Field(default_factory=DataSourceSettings)


def get_settings() -> Settings:
    """Load settings from environment and .env file."""
    return Settings()
