from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=3001, validation_alias="PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    static_dir: Path = Field(default=Path("public"), validation_alias="STATIC_DIR")

    sbw_api_url: str = Field(
        default="https://mesonet.agron.iastate.edu/geojson/sbw.geojson",
        validation_alias="SBW_API_URL",
    )
    md_rss_url: str = Field(
        default="https://www.spc.noaa.gov/products/spcmdrss.xml",
        validation_alias="MD_RSS_URL",
    )
    radmap_url: str = Field(
        default="https://mesonet.agron.iastate.edu/GIS/radmap.php",
        validation_alias="RADMAP_URL",
    )
    plot_url: str = Field(
        default="https://mesonet.agron.iastate.edu/plotting/auto/plot/208/",
        validation_alias="PLOT_URL",
    )
    nwstext_url: str = Field(
        default="https://mesonet.agron.iastate.edu/json/nwstext.py",
        validation_alias="NWSTEXT_URL",
    )

    warning_webhook_url: str = Field(
        default="https://hook.us2.make.com/encxha5954hndv65p98is9prvx53qtua",
        validation_alias="WARNING_WEBHOOK_URL",
    )
    discussion_webhook_url: str = Field(
        default="https://hook.us2.make.com/2lfo732u8mwrpaabjdesea44s8iccn0c",
        validation_alias="DISCUSSION_WEBHOOK_URL",
    )

    user_agent: str = Field(
        default="tornado-monitor/0.1", validation_alias="USER_AGENT"
    )
    http_timeout_seconds: float = Field(
        default=15.0, validation_alias="HTTP_TIMEOUT_SECONDS"
    )

    poll_seconds: float = Field(default=10.0, validation_alias="POLL_SECONDS")
    target_phenomenon: str = Field(
        default="Tornado Warning", validation_alias="TARGET_PHENOMENON"
    )
    bbox_margin: float = Field(default=0.2, validation_alias="BBOX_MARGIN")
    text_budget: int = Field(default=1800, validation_alias="TEXT_BUDGET")
    warning_image: Literal["plot", "radmap"] = Field(
        default="plot", validation_alias="WARNING_IMAGE"
    )
    warning_dedup_policy: Literal["previous_cycle", "cumulative"] = Field(
        default="previous_cycle", validation_alias="WARNING_DEDUP_POLICY"
    )
    discussion_retention_hours: int = Field(
        default=72, validation_alias="DISCUSSION_RETENTION_HOURS"
    )
