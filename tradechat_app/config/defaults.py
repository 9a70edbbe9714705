"""Default configuration parameters for the conversational response pipeline."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class StreamParams:
    """Inference endpoint and stream decoding parameters."""
    url: str = "http://localhost:8000/api/chat"
    model: str = "montra-32b"
    max_tokens: int = 500
    temperature: float = 0.3
    timeout_seconds: float = 120.0                  # Overall wall-clock deadline
    done_sentinel: str = "[DONE]"                   # SSE terminator payload
    sse_prefix: str = "data: "
    encoding: str = "utf-8"


@dataclass(frozen=True)
class SimulationParams:
    """Monte Carlo projection parameters."""
    n_paths: int = 50
    steps: int = 24                                  # Hourly steps in the horizon
    hours_per_week: int = 168                        # Converts 7d vol to per-step vol
    drift_offset: float = 0.0001                     # Minimum drift magnitude for a directional bias
    confidence_scale: float = 5000.0                 # (confidence - 50) / scale
    default_volatility_7d: float = 2.5               # Used when a snapshot has no 7d vol
    min_step_factor: float = 1e-6                    # Floor on the per-step multiplier
    best_entry_discount: float = 0.99


@dataclass(frozen=True)
class CacheParams:
    """Market snapshot cache parameters."""
    ttl_seconds: float = 30.0
    snapshot_timeout_seconds: float = 15.0


@dataclass(frozen=True)
class RenderParams:
    """Markdown rendering parameters."""
    section_keywords: tuple[str, ...] = (
        "SIGNAL", "CONVICTION", "RECOMMENDATION", "POSITION", "RISK",
        "ENTRY", "TARGET", "STOP", "SUMMARY", "ANALYSIS", "OVERVIEW", "VERDICT",
        "WHALE", "SMART MONEY", "DERIVATIVE", "VOLATILITY",
        "DIRECTION", "SETUP", "TRADE", "EXECUTION", "R:R", "KEY",
        "MATRIX", "CALL", "THESIS", "ORDER",
    )
    min_thesis_chars: int = 10


@dataclass(frozen=True)
class DefaultConfig:
    """Complete default configuration."""
    stream: StreamParams = field(default_factory=StreamParams)
    simulation: SimulationParams = field(default_factory=SimulationParams)
    cache: CacheParams = field(default_factory=CacheParams)
    render: RenderParams = field(default_factory=RenderParams)


def get_default_config() -> DefaultConfig:
    """Get the default configuration instance."""
    return DefaultConfig(
        stream=StreamParams(),
        simulation=SimulationParams(),
        cache=CacheParams(),
        render=RenderParams(),
    )
