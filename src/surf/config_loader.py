"""Load, validate, and hot-reload the SwellSync algorithm configuration.

The config lives in ``surf_config.yaml`` alongside this module.  At startup
it is loaded once and cached.  Call ``reload_surf_config()`` to re-read from
disk after an edit; no restart required.

Usage::

    from src.surf.config_loader import get_surf_config

    config = get_surf_config()
    config.rating.band_for_level(6).label      # "EPIC"
    config.ingestion.match_radius_km           # 10.0
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("swellsync.surf.config")

_CONFIG_PATH = Path(__file__).parent / "surf_config.yaml"

MAX_LEVEL = 6


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RatingBand:
    """One row of the wave-height band table."""

    level: int
    label: str
    color: str
    min_ft: float


@dataclass
class WindModifierConfig:
    offshore_min_angle: float = 135.0
    offshore_max_knots: float = 15.0
    onshore_max_angle: float = 45.0
    onshore_min_knots: float = 10.0


@dataclass
class RatingConfig:
    """Wave-height bands plus the wind and period modifier thresholds."""

    bands: list[RatingBand]
    wind: WindModifierConfig
    long_period_seconds: float = 12.0

    def band_for_level(self, level: int) -> RatingBand:
        return self.bands[max(0, min(MAX_LEVEL, level))]


@dataclass
class AgreementConfig:
    min_sources: int = 2
    high_threshold: int = 85
    moderate_threshold: int = 65
    colors: dict[str, str] = field(default_factory=dict)


@dataclass
class IngestionConfig:
    """Activity import settings."""

    match_radius_km: float = 10.0
    sync_window_days: int = 30
    default_duration_minutes: int = 60
    default_notes: str = "Garmin sync"
    tracked_activity_types: list[str] = field(default_factory=lambda: ["SURFING"])


@dataclass
class OAuthConfig:
    scope: str = "activity:read"
    default_token_lifetime_seconds: int = 7_776_000
    pending_ttl_seconds: int = 600
    sweep_interval_seconds: int = 60


@dataclass
class RetryConfig:
    max_retries: int = 3
    base_delay_seconds: float = 1.0


@dataclass
class ProvidersConfig:
    stormglass_params: list[str] = field(default_factory=list)
    stormglass_sources: list[str] = field(default_factory=list)
    open_meteo_marine_hourly: list[str] = field(default_factory=list)
    open_meteo_weather_hourly: list[str] = field(default_factory=list)


@dataclass
class SurfConfig:
    """Complete, validated algorithm configuration.

    This is the single in-memory representation of surf_config.yaml.  The
    rating engine, agreement scorer, gateway, auth manager and ingestor all
    read from this object.
    """

    version: str
    rating: RatingConfig
    agreement: AgreementConfig
    ingestion: IngestionConfig
    oauth: OAuthConfig
    retry: RetryConfig
    providers: ProvidersConfig
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when surf_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Surf config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _number(
    section: dict, key: str, default: float, path: str, errors: list[str]
) -> float:
    value = section.get(key, default)
    try:
        return float(value)
    except (TypeError, ValueError):
        errors.append(f"{path}.{key} must be a number, got {value!r}")
        return default


def _build_bands(bands_raw: Any, errors: list[str]) -> list[RatingBand]:
    if not isinstance(bands_raw, list) or not bands_raw:
        errors.append("'rating.bands' must be a non-empty list")
        return []

    bands: list[RatingBand] = []
    for i, row in enumerate(bands_raw):
        if not isinstance(row, dict):
            errors.append(f"rating.bands[{i}] must be a mapping")
            continue
        try:
            bands.append(
                RatingBand(
                    level=int(row["level"]),
                    label=str(row["label"]),
                    color=str(row["color"]),
                    min_ft=float(row["min_ft"]),
                )
            )
        except KeyError as exc:
            errors.append(f"rating.bands[{i}] is missing {exc.args[0]!r}")
        except (TypeError, ValueError) as exc:
            errors.append(f"rating.bands[{i}] has an invalid value: {exc}")

    if [b.level for b in bands] != list(range(MAX_LEVEL + 1)):
        errors.append(f"rating.bands must list levels 0..{MAX_LEVEL} in order")
    if bands and bands[0].min_ft != 0.0:
        errors.append("rating.bands[0].min_ft must be 0")
    for prev, nxt in zip(bands, bands[1:]):
        if nxt.min_ft <= prev.min_ft:
            errors.append(
                f"rating.bands min_ft must increase (level {nxt.level} <= level {prev.level})"
            )
    return bands


def _validate_and_build(raw: dict) -> SurfConfig:
    """Validate the raw YAML dict and construct a SurfConfig.

    Raises:
        ConfigValidationError: If required fields are missing or invalid.
    """
    errors: list[str] = []

    version = str(raw.get("version", "1.0"))

    # ── Rating ──
    rating_raw = raw.get("rating") or {}
    bands = _build_bands(rating_raw.get("bands"), errors)
    wind_raw = rating_raw.get("wind") or {}
    wind = WindModifierConfig(
        offshore_min_angle=_number(wind_raw, "offshore_min_angle", 135, "rating.wind", errors),
        offshore_max_knots=_number(wind_raw, "offshore_max_knots", 15, "rating.wind", errors),
        onshore_max_angle=_number(wind_raw, "onshore_max_angle", 45, "rating.wind", errors),
        onshore_min_knots=_number(wind_raw, "onshore_min_knots", 10, "rating.wind", errors),
    )
    period_raw = rating_raw.get("period") or {}
    rating = RatingConfig(
        bands=bands,
        wind=wind,
        long_period_seconds=_number(
            period_raw, "long_period_seconds", 12, "rating.period", errors
        ),
    )

    # ── Agreement ──
    ag_raw = raw.get("agreement") or {}
    agreement = AgreementConfig(
        min_sources=int(_number(ag_raw, "min_sources", 2, "agreement", errors)),
        high_threshold=int(_number(ag_raw, "high_threshold", 85, "agreement", errors)),
        moderate_threshold=int(_number(ag_raw, "moderate_threshold", 65, "agreement", errors)),
        colors={
            "high": "#689F38",
            "moderate": "#FBC02D",
            "low": "#F57C00",
            "none": "#8E8E8E",
            **(ag_raw.get("colors") or {}),
        },
    )
    if agreement.min_sources < 2:
        errors.append("agreement.min_sources must be at least 2")
    if agreement.moderate_threshold > agreement.high_threshold:
        errors.append("agreement.moderate_threshold must not exceed high_threshold")

    # ── Ingestion ──
    in_raw = raw.get("ingestion") or {}
    tracked = in_raw.get("tracked_activity_types", ["SURFING"])
    if not isinstance(tracked, list) or not tracked:
        errors.append("ingestion.tracked_activity_types must be a non-empty list")
        tracked = ["SURFING"]
    ingestion = IngestionConfig(
        match_radius_km=_number(in_raw, "match_radius_km", 10, "ingestion", errors),
        sync_window_days=int(_number(in_raw, "sync_window_days", 30, "ingestion", errors)),
        default_duration_minutes=int(
            _number(in_raw, "default_duration_minutes", 60, "ingestion", errors)
        ),
        default_notes=str(in_raw.get("default_notes", "Garmin sync")),
        tracked_activity_types=[str(t) for t in tracked],
    )
    if ingestion.match_radius_km <= 0:
        errors.append("ingestion.match_radius_km must be positive")

    # ── OAuth ──
    oa_raw = raw.get("oauth") or {}
    oauth = OAuthConfig(
        scope=str(oa_raw.get("scope", "activity:read")),
        default_token_lifetime_seconds=int(
            _number(oa_raw, "default_token_lifetime_seconds", 7_776_000, "oauth", errors)
        ),
        pending_ttl_seconds=int(_number(oa_raw, "pending_ttl_seconds", 600, "oauth", errors)),
        sweep_interval_seconds=int(
            _number(oa_raw, "sweep_interval_seconds", 60, "oauth", errors)
        ),
    )

    # ── Retry ──
    rt_raw = raw.get("retry") or {}
    retry = RetryConfig(
        max_retries=int(_number(rt_raw, "max_retries", 3, "retry", errors)),
        base_delay_seconds=_number(rt_raw, "base_delay_seconds", 1.0, "retry", errors),
    )
    if retry.max_retries < 0:
        errors.append("retry.max_retries must not be negative")

    # ── Providers ──
    pv_raw = raw.get("providers") or {}
    sg_raw = pv_raw.get("stormglass") or {}
    om_raw = pv_raw.get("open_meteo") or {}
    providers = ProvidersConfig(
        stormglass_params=list(sg_raw.get("conditions_params", [])),
        stormglass_sources=list(sg_raw.get("model_sources", ["sg", "noaa"])),
        open_meteo_marine_hourly=list(om_raw.get("marine_hourly", [])),
        open_meteo_weather_hourly=list(om_raw.get("weather_hourly", [])),
    )

    if errors:
        raise ConfigValidationError(
            f"surf_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return SurfConfig(
        version=version,
        rating=rating,
        agreement=agreement,
        ingestion=ingestion,
        oauth=oauth,
        retry=retry,
        providers=providers,
        _raw=raw,
    )


def load_surf_config(path: Path | None = None) -> SurfConfig:
    """Load and validate the surf config from disk.

    Args:
        path: Override path to YAML. Uses the bundled surf_config.yaml by default.

    Returns:
        Validated SurfConfig instance.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded surf config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: SurfConfig | None = None
_config_lock = threading.Lock()


def get_surf_config() -> SurfConfig:
    """Return the global SurfConfig singleton, loading it on first call.

    Thread-safe.  Use ``reload_surf_config()`` to refresh after YAML changes.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_surf_config()
    return _config


def reload_surf_config(path: Path | None = None) -> SurfConfig:
    """Reload the surf config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_surf_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded surf config: %s → %s", old_version, new_config.version)
    return new_config
