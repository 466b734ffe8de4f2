"""
Statistical Analysis Module for BioVista
========================================
Pairwise statistics for environmental/diversity series: Pearson correlation
with a t-based p-value, least-squares line fit, descriptive statistics and
IQR outlier detection.

All module-level functions are pure.  Absent (``None``) and non-numeric
entries are treated as NaN and excluded from every computation.  Inputs too
small to compute on return a sentinel (``0.0``, ``NaN``, ``None`` or an
empty result) instead of raising.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from biovista.config import Config
from biovista.dataset import CanonicalDataset
from biovista.logging_config import get_analysis_logger
from biovista.variable_resolver import resolve

logger = get_analysis_logger()


def to_float_array(series: Sequence[Any]) -> np.ndarray:
    """Convert a raw series to float64, mapping absent or invalid cells to NaN.

    Only real numbers count; numeric-looking text is an invalid cell.
    """
    values = np.full(len(series), np.nan, dtype=float)
    for i, value in enumerate(series):
        if isinstance(value, (bool, np.bool_)):
            continue
        if isinstance(value, (int, float, np.integer, np.floating)):
            values[i] = float(value)
    return values


def _finite_pairs(x: Sequence[Any], y: Sequence[Any]) -> Tuple[np.ndarray, np.ndarray]:
    if len(x) != len(y):
        logger.warning(f"Series lengths differ ({len(x)} vs {len(y)}); pairing by position")
    n = min(len(x), len(y))
    xs = to_float_array(x[:n])
    ys = to_float_array(y[:n])
    mask = np.isfinite(xs) & np.isfinite(ys)
    return xs[mask], ys[mask]


@dataclass(frozen=True)
class DescriptiveStats:
    """Summary of the finite values of one series.

    ``median`` is the upper-middle element of the sorted values when the count
    is even, not the average of the two middle elements.
    """
    count: int
    missing: int
    mean: float
    median: float
    minimum: float
    maximum: float
    std: float

    @property
    def range(self) -> Tuple[float, float]:
        return (self.minimum, self.maximum)


def descriptive_statistics(series: Sequence[Any]) -> Optional[DescriptiveStats]:
    values = to_float_array(series)
    finite = np.sort(values[np.isfinite(values)])
    if finite.size == 0:
        return None

    mean = float(finite.mean())
    return DescriptiveStats(
        count=int(finite.size),
        missing=int(values.size - finite.size),
        mean=mean,
        median=float(finite[finite.size // 2]),
        minimum=float(finite[0]),
        maximum=float(finite[-1]),
        std=float(np.sqrt(np.mean((finite - mean) ** 2))),  # population, divides by n
    )


def pearson_correlation(x: Sequence[Any], y: Sequence[Any]) -> float:
    """Pearson's r over the positions where both values are finite.

    Returns 0.0 when there is no usable pair or either series is constant.
    """
    xs, ys = _finite_pairs(x, y)
    n = xs.size
    if n == 0 or xs.min() == xs.max() or ys.min() == ys.max():
        return 0.0

    x_diff = xs - xs.mean()
    y_diff = ys - ys.mean()
    covariance = float(np.sum(x_diff * y_diff)) / n
    x_std = math.sqrt(float(np.sum(x_diff * x_diff)) / n)
    y_std = math.sqrt(float(np.sum(y_diff * y_diff)) / n)

    if x_std == 0 or y_std == 0:
        return 0.0

    r = covariance / (x_std * y_std)
    return max(-1.0, min(1.0, r))


def pearson_p_value(r: float, n: int) -> float:
    """Two-tailed p-value for Pearson's r from Student's t with n-2 dof.

    NaN when ``r`` is not finite or ``n < 3``.
    """
    if not math.isfinite(r) or n < 3:
        return float('nan')
    if abs(r) >= 1:
        return 0.0
    if r == 0:
        return 1.0

    df = n - 2
    t = abs(r) * math.sqrt(df / (1 - r * r))
    p = 2 * stats.t.sf(t, df)
    return float(min(1.0, max(0.0, p)))


@dataclass(frozen=True)
class LinearFit:
    """Ordinary least-squares line ``y = slope * x + intercept``"""
    slope: float
    intercept: float
    n: int
    r_squared: float

    def predict(self, x: Sequence[float]) -> np.ndarray:
        return self.slope * np.asarray(x, dtype=float) + self.intercept


def linear_fit(x: Sequence[Any], y: Sequence[Any]) -> Optional[LinearFit]:
    """Closed-form OLS fit; None when the x values have no spread"""
    xs, ys = _finite_pairs(x, y)
    n = xs.size
    sum_x = float(xs.sum())
    sum_y = float(ys.sum())
    sum_xy = float(np.sum(xs * ys))
    sum_xx = float(np.sum(xs * xs))

    denominator = n * sum_xx - sum_x ** 2
    if n == 0 or denominator <= 0:
        return None

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n
    r = pearson_correlation(xs, ys)
    return LinearFit(slope=slope, intercept=intercept, n=int(n), r_squared=r * r)


@dataclass(frozen=True)
class OutlierResult:
    """IQR outlier flags for one series; bounds are None when not computable"""
    indices: FrozenSet[int] = field(default_factory=frozenset)
    q1: Optional[float] = None
    q3: Optional[float] = None
    lower_bound: Optional[float] = None
    upper_bound: Optional[float] = None

    @property
    def iqr(self) -> Optional[float]:
        if self.q1 is None or self.q3 is None:
            return None
        return self.q3 - self.q1


def iqr_outliers(series: Sequence[Any], multiplier: float = 1.5,
                 min_samples: int = 4) -> OutlierResult:
    """Flag values outside ``[Q1 - k*IQR, Q3 + k*IQR]``.

    Quartiles use nearest-rank indexing into the sorted finite values
    (``floor(0.25 n)`` and ``floor(0.75 n)``).  Non-finite values are never
    flagged.
    """
    values = to_float_array(series)
    finite_mask = np.isfinite(values)
    finite = np.sort(values[finite_mask])
    n = finite.size
    if n < min_samples:
        return OutlierResult()

    q1 = float(finite[int(math.floor(0.25 * n))])
    q3 = float(finite[int(math.floor(0.75 * n))])
    spread = q3 - q1
    lower = q1 - multiplier * spread
    upper = q3 + multiplier * spread

    flagged = finite_mask & ((values < lower) | (values > upper))
    return OutlierResult(
        indices=frozenset(int(i) for i in np.flatnonzero(flagged)),
        q1=q1,
        q3=q3,
        lower_bound=lower,
        upper_bound=upper,
    )


def bivariate_outliers(x: Sequence[Any], y: Sequence[Any], multiplier: float = 1.5,
                       min_samples: int = 4) -> Dict[int, str]:
    """Union of per-axis IQR flags, tagged ``"x"``, ``"y"`` or ``"both"``"""
    x_flags = iqr_outliers(x, multiplier, min_samples).indices
    y_flags = iqr_outliers(y, multiplier, min_samples).indices

    tags: Dict[int, str] = {}
    for index in sorted(x_flags | y_flags):
        if index in x_flags and index in y_flags:
            tags[index] = "both"
        elif index in x_flags:
            tags[index] = "x"
        else:
            tags[index] = "y"
    return tags


class StatisticalAnalysis:
    """Pairwise analysis of dataset variables using configured thresholds"""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()

    def analyze_relationship(self, x: Sequence[Any], y: Sequence[Any]) -> Dict[str, Any]:
        """Correlation, significance, fit, outliers and summaries for one pair"""
        settings = self.config.statistics
        xs, _ = _finite_pairs(x, y)
        n_pairs = int(xs.size)
        r = pearson_correlation(x, y)

        return {
            'correlation': r,
            'p_value': pearson_p_value(r, n_pairs),
            'n': n_pairs,
            'fit': linear_fit(x, y),
            'outliers': bivariate_outliers(x, y, settings.iqr_multiplier,
                                           settings.min_outlier_samples),
            'x_summary': descriptive_statistics(x),
            'y_summary': descriptive_statistics(y),
        }

    def correlation_matrix(self, dataset: CanonicalDataset, labels: List[str]) -> pd.DataFrame:
        """Pairwise Pearson correlations between resolved variables"""
        strict = self.config.resolver.strict
        series = {label: resolve(dataset, label, strict) for label in labels}
        matrix = pd.DataFrame(index=labels, columns=labels, dtype=float)
        for a in labels:
            for b in labels:
                matrix.loc[a, b] = pearson_correlation(series[a], series[b])
        return matrix

    def rank_relationships(self, dataset: CanonicalDataset,
                           environmental_labels: List[str],
                           diversity_labels: List[str],
                           top_n: Optional[int] = None) -> List[Dict[str, Any]]:
        """Environmental x diversity pairs ordered by descending |r|"""
        top_n = top_n or self.config.statistics.top_relationships

        strict = self.config.resolver.strict
        relationships = []
        for env_label in environmental_labels:
            env_values = resolve(dataset, env_label, strict)
            for div_label in diversity_labels:
                r = pearson_correlation(env_values, resolve(dataset, div_label, strict))
                relationships.append({
                    'x_variable': env_label,
                    'y_variable': div_label,
                    'correlation': r,
                    'abs_correlation': abs(r),
                })

        relationships.sort(key=lambda rel: rel['abs_correlation'], reverse=True)
        logger.info(f"Ranked {len(relationships)} relationships, keeping top {top_n}")
        return relationships[:top_n]
