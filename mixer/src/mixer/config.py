"""
Configuration for coinjoin output decomposition rounds.
"""

from __future__ import annotations

from cjcore.constants import (
    DEFAULT_MAX_ALLOWED_OUTPUT_AMOUNT,
    DEFAULT_MIN_ALLOWED_OUTPUT_AMOUNT,
)
from cjcore.fees import FeeRate
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MixerConfig(BaseModel):
    """Round parameters supplied by the coordinator."""

    fee_rate: float = Field(default=2.0, ge=0.0, description="Network fee rate in sat/vB")
    min_allowed_output_amount: int = Field(
        default=DEFAULT_MIN_ALLOWED_OUTPUT_AMOUNT, ge=1, description="Minimum output in sats"
    )
    max_allowed_output_amount: int = Field(
        default=DEFAULT_MAX_ALLOWED_OUTPUT_AMOUNT, ge=1, description="Maximum output in sats"
    )
    is_taproot_allowed: bool = True
    seed: int | None = Field(default=None, description="Random seed for reproducible rounds")

    # Optimized search budget
    search_timeout: float = Field(
        default=10.0, gt=0.0, description="Seconds allowed for the optimized search"
    )
    max_search_candidates: int = Field(
        default=10_000, ge=1, description="Combinations consumed per participant"
    )
    max_search_nodes: int = Field(
        default=500_000, ge=1, description="Search tree nodes visited per participant"
    )

    @model_validator(mode="after")
    def check_output_bounds(self) -> MixerConfig:
        if self.max_allowed_output_amount < self.min_allowed_output_amount:
            raise ValueError(
                f"max_allowed_output_amount ({self.max_allowed_output_amount}) is below "
                f"min_allowed_output_amount ({self.min_allowed_output_amount})"
            )
        return self

    def get_fee_rate(self) -> FeeRate:
        return FeeRate.from_sat_per_vbyte(self.fee_rate)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MIXER_", env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    fee_rate: float = 2.0
    min_allowed_output_amount: int = DEFAULT_MIN_ALLOWED_OUTPUT_AMOUNT
    max_allowed_output_amount: int = DEFAULT_MAX_ALLOWED_OUTPUT_AMOUNT
    is_taproot_allowed: bool = True
    seed: int | None = None

    search_timeout: float = 10.0
    max_search_candidates: int = 10_000
    max_search_nodes: int = 500_000

    log_level: str = "INFO"

    def to_config(self, **overrides: object) -> MixerConfig:
        """Build a validated MixerConfig, letting non-None overrides win."""
        values = self.model_dump(exclude={"log_level"})
        values.update({key: value for key, value in overrides.items() if value is not None})
        return MixerConfig(**values)


def get_settings() -> Settings:
    return Settings()
