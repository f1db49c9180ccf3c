"""SwellSync surf conditions engine.

Turns heterogeneous ocean/weather telemetry into a deterministic quality
rating and a cross-source confidence measure.

Subpackages:
    providers/ — Condition providers (StormGlass primary, Open-Meteo fallback)

Core modules:
    units         — Pure unit conversions (ft, knots, compass points)
    rating        — Wave-height bands + wind/period modifiers → 0–6 level
    agreement     — Coefficient-of-variation consensus score
    gateway       — Ordered provider fallback chain
    conditions    — Hourly rated snapshots and per-model comparison
    config_loader — Load/validate/hot-reload surf_config.yaml
"""

from src.surf.agreement import AgreementResult, AgreementScorer
from src.surf.config_loader import SurfConfig, get_surf_config
from src.surf.gateway import AllSourcesFailed, ConditionsReport, ProviderGateway
from src.surf.rating import Rating, RatingEngine

__all__ = [
    "AgreementResult",
    "AgreementScorer",
    "AllSourcesFailed",
    "ConditionsReport",
    "ProviderGateway",
    "Rating",
    "RatingEngine",
    "SurfConfig",
    "get_surf_config",
]
