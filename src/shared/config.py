"""Environment settings using pydantic-settings."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class GateSettings(BaseSettings):
    """Process-level settings read from the environment."""
    log_level: str = Field(default="info", validation_alias="LOG_LEVEL")
    log_json: bool = Field(default=False, validation_alias="GATE_LOG_JSON")
    config_path: str = Field(
        default="quality-gate.yml", validation_alias="GATE_CONFIG_PATH"
    )
    history_path: str = Field(default="", validation_alias="GATE_HISTORY_PATH")

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }
