from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    salon_api_base_url: str = Field(default="http://localhost:3000", alias="SALON_API_BASE_URL")
    salon_api_timeout_seconds: float = Field(default=10.0, alias="SALON_API_TIMEOUT_SECONDS")
    booking_timezone: str = Field(default="America/New_York", alias="BOOKING_TIMEZONE")
    clock_tick_seconds: float = Field(default=60.0, alias="CLOCK_TICK_SECONDS")
    default_service_duration_minutes: int = Field(default=30, alias="DEFAULT_SERVICE_DURATION_MINUTES")
    session_ttl_minutes: int = Field(default=30, alias="SESSION_TTL_MINUTES")
    allowed_origins: str = Field(default="http://localhost:3000", alias="ALLOWED_ORIGINS")
    shop_name: str = Field(default="JBBarbershop", alias="SHOP_NAME")

    # Frontend routes the booking flow can send the browser to
    profile_route: str = Field(default="/dashboard/cliente", alias="PROFILE_ROUTE")
    dashboard_route: str = Field(default="/dashboard", alias="DASHBOARD_ROUTE")
    landing_route: str = Field(default="/inicio", alias="LANDING_ROUTE")
    sign_in_route: str = Field(default="/auth", alias="SIGN_IN_ROUTE")
    barber_page_route: str = Field(default="/barberos/{barber_id}", alias="BARBER_PAGE_ROUTE")

    model_config = SettingsConfigDict(env_file=(".env",), extra="ignore")

    @property
    def allowed_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
