"""
Engine settings read from flat configuration mappings.

Flask loads ``ABLESUNG_*`` environment variables into ``app.config`` with
the prefix stripped, so ``ABLESUNG_ANOMALY_SPIKE_RATIO=1.8`` arrives here
as ``ANOMALY_SPIKE_RATIO``. Each settings model picks the keys under its
own prefix; missing keys keep their defaults. Values are validated by
pydantic, so a malformed value raises ``pydantic.ValidationError`` (a
``ValueError``).
"""

from __future__ import annotations

from typing import Dict, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .costs import PRICE_DEFAULTS, UNIT_LABELS


class AnomalySettings(BaseModel):
    """Thresholds for the anomaly classifier."""

    model_config = ConfigDict(frozen=True)

    lookback_months: int = Field(default=12, ge=1)
    default_interval_days: int = Field(default=30, ge=1)
    stale_warning_factor: float = Field(default=2.0, gt=0)
    stale_critical_factor: float = Field(default=3.0, gt=0)
    min_readings: int = Field(default=3, ge=3)
    spike_ratio: float = Field(default=1.5, gt=0)
    critical_spike_ratio: float = Field(default=2.0, gt=0)
    drop_ratio: float = Field(default=0.3, ge=0)
    drop_min_average: float = Field(default=0.1, ge=0)
    unit_labels: Dict[str, str] = Field(default_factory=lambda: dict(UNIT_LABELS))

    @model_validator(mode="after")
    def _ordered_thresholds(self) -> "AnomalySettings":
        """Critical thresholds must not be laxer than the warning ones."""
        if self.stale_critical_factor < self.stale_warning_factor:
            raise ValueError("stale_critical_factor must be >= stale_warning_factor")
        if self.critical_spike_ratio < self.spike_ratio:
            raise ValueError("critical_spike_ratio must be >= spike_ratio")
        return self

    @classmethod
    def from_mapping(
        cls, config: Mapping[str, object], prefix: str = "ANOMALY_"
    ) -> "AnomalySettings":
        """Build settings from keys like ``ANOMALY_SPIKE_RATIO``; missing keys keep defaults."""

        values = _prefixed(cls, config, prefix)
        values["unit_labels"] = _merged(UNIT_LABELS, config.get(f"{prefix}UNIT_LABELS"))
        return cls.model_validate(values)


class ExportSettings(BaseModel):
    """Data window and price table for period exports."""

    model_config = ConfigDict(frozen=True)

    buffer_months: int = Field(default=3, ge=0)
    prices: Dict[str, float] = Field(default_factory=lambda: dict(PRICE_DEFAULTS))
    unit_labels: Dict[str, str] = Field(default_factory=lambda: dict(UNIT_LABELS))

    @field_validator("prices")
    @classmethod
    def _non_negative_prices(cls, value: Dict[str, float]) -> Dict[str, float]:
        negative = sorted(key for key, price in value.items() if price < 0)
        if negative:
            raise ValueError(f"negative price for {', '.join(negative)}")
        return value

    @classmethod
    def from_mapping(
        cls, config: Mapping[str, object], prefix: str = "EXPORT_"
    ) -> "ExportSettings":
        values = _prefixed(cls, config, prefix)
        values["prices"] = _merged(PRICE_DEFAULTS, config.get(f"{prefix}PRICES"))
        values["unit_labels"] = _merged(UNIT_LABELS, config.get(f"{prefix}UNIT_LABELS"))
        return cls.model_validate(values)


def _prefixed(
    cls: type[BaseModel], config: Mapping[str, object], prefix: str
) -> Dict[str, object]:
    values: Dict[str, object] = {}
    for name in cls.model_fields:
        key = f"{prefix}{name.upper()}"
        if key in config:
            values[name] = config[key]
    return values


def _merged(defaults: Mapping[str, object], overrides: object) -> Dict[str, object]:
    merged: Dict[str, object] = dict(defaults)
    if overrides is None:
        return merged
    if not isinstance(overrides, Mapping):
        raise ValueError(f"Expected a mapping, got {overrides!r}")
    merged.update({str(key): value for key, value in overrides.items()})
    return merged
