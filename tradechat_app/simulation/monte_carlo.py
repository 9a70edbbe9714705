"""
Monte Carlo price projection for a market snapshot.

Paths follow a discrete multiplicative random walk with hourly steps:

    price[t+1] = price[t] * (1 + drift + step_vol * z)

where step_vol converts the weekly realized volatility to an hourly figure,
drift is signed by the snapshot bias and scaled by its confidence, and z is a
standard normal variate from a Box-Muller transform. Percentile bands are
taken per step across the path batch.
"""

import math
from typing import Optional

import numpy as np

from ..config.defaults import SimulationParams
from ..data.models import Bias, MarketSnapshot, SimulationResult
from ..logging.config import get_logger

logger = get_logger(__name__)

BAND_PERCENTILES = (10, 25, 50, 75, 90)


class MonteCarloSimulator:
    """
    Generates stochastic price paths from snapshot inputs.

    The random source is injectable; passing a seeded numpy Generator makes
    every result reproducible.
    """

    def __init__(self, params: Optional[SimulationParams] = None,
                 rng: Optional[np.random.Generator] = None):
        self.params = params or SimulationParams()
        self.rng = rng if rng is not None else np.random.default_rng()

    def step_volatility(self, volatility7d: float) -> float:
        """Weekly volatility in percent to per-step standard deviation."""
        return (volatility7d / 100) / math.sqrt(self.params.hours_per_week)

    def drift(self, bias: str, confidence: float) -> float:
        """Per-step drift: positive when bullish, negative when bearish, zero otherwise."""
        kind = Bias.infer(bias)
        if kind is Bias.NEUTRAL:
            return 0.0
        magnitude = abs((confidence - 50) / self.params.confidence_scale) + self.params.drift_offset
        return magnitude if kind is Bias.BULLISH else -magnitude

    def standard_normal(self, shape: tuple[int, ...]) -> np.ndarray:
        """Box-Muller transform of two independent uniform draws."""
        # 1 - U maps [0, 1) onto (0, 1] so the log is always finite
        u1 = 1.0 - self.rng.random(shape)
        u2 = self.rng.random(shape)
        return np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)

    def simulate(
        self,
        price: float,
        support: float,
        resistance: float,
        bias: str,
        confidence: float,
        volatility7d: float,
        symbol: str = "",
        n_paths: Optional[int] = None,
        steps: Optional[int] = None,
    ) -> SimulationResult:
        """
        Run the projection.

        Args:
            price: Starting price, must be positive
            support: Support level, used for the suggested entry
            resistance: Resistance level, carried through for display
            bias: bullish, bearish or neutral (substring match)
            confidence: Bias confidence, 0-100
            volatility7d: Weekly realized volatility in percent
            symbol: Symbol label for the result
            n_paths: Number of paths, defaults to configuration
            steps: Number of hourly steps, defaults to configuration

        Returns:
            SimulationResult with paths of shape (n_paths, steps + 1)
        """
        if price <= 0:
            raise ValueError(f"Starting price must be positive, got {price}")

        n_paths = self.params.n_paths if n_paths is None else n_paths
        steps = self.params.steps if steps is None else steps
        if n_paths <= 0 or steps <= 0:
            raise ValueError(f"Path count and steps must be positive, got n_paths={n_paths}, steps={steps}")
        step_vol = self.step_volatility(volatility7d)
        drift = self.drift(bias, confidence)

        z = self.standard_normal((n_paths, steps))
        factors = np.maximum(1.0 + drift + step_vol * z, self.params.min_step_factor)

        paths = np.empty((n_paths, steps + 1))
        paths[:, 0] = price
        paths[:, 1:] = price * np.cumprod(factors, axis=1)

        terminal = paths[:, -1]
        bands = {p: percentile_band(paths, p) for p in BAND_PERCENTILES}
        median_end = float(bands[50][-1])

        result = SimulationResult(
            symbol=symbol,
            start_price=float(price),
            support=float(support),
            resistance=float(resistance),
            volatility7d=float(volatility7d),
            drift=drift,
            step_volatility=step_vol,
            paths=paths,
            bands=bands,
            bullish_ratio=float(np.count_nonzero(terminal > price)) / n_paths,
            median_end_price=median_end,
            median_return_pct=(median_end - price) / price * 100,
            best_entry=min(support, price * self.params.best_entry_discount),
        )

        logger.debug(
            "Simulation complete",
            symbol=symbol,
            n_paths=n_paths,
            steps=steps,
            drift=drift,
            step_volatility=round(step_vol, 6),
            bullish_pct=result.bullish_pct,
        )
        return result

    def simulate_snapshot(self, snapshot: MarketSnapshot) -> SimulationResult:
        """Run the projection with inputs taken from a market snapshot."""
        volatility7d = snapshot.volatility7d
        if volatility7d is None:
            volatility7d = self.params.default_volatility_7d
        return self.simulate(
            price=snapshot.price,
            support=snapshot.support,
            resistance=snapshot.resistance,
            bias=snapshot.bias,
            confidence=snapshot.confidence,
            volatility7d=volatility7d,
            symbol=snapshot.symbol,
        )


def percentile_band(paths: np.ndarray, pct: int) -> np.ndarray:
    """
    Price at the given percentile for every step.

    Uses the sorted value at index floor(n * pct / 100), clamped to the last
    path, with no interpolation between paths.
    """
    n = paths.shape[0]
    index = min(int(math.floor(n * pct / 100)), n - 1)
    return np.sort(paths, axis=0)[index]
