"""Monte Carlo price projection"""

from .monte_carlo import BAND_PERCENTILES, MonteCarloSimulator, percentile_band

__all__ = ["BAND_PERCENTILES", "MonteCarloSimulator", "percentile_band"]
