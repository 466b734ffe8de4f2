import math

import numpy as np
import pandas as pd
import pytest

from biovista.config import Config
from biovista.data_loader import DataLoader
from biovista.statistical_analysis import (StatisticalAnalysis, bivariate_outliers,
                                           descriptive_statistics, iqr_outliers,
                                           linear_fit, pearson_correlation,
                                           pearson_p_value, to_float_array)
from biovista.variable_resolver import resolve

from conftest import sample_rows, to_xlsx


class TestCorrelation:

    def test_perfect_linear(self):
        assert pearson_correlation([1, 2, 3, 4, 5], [2, 4, 6, 8, 10]) == pytest.approx(1.0)

    def test_negative(self):
        assert pearson_correlation([1, 2, 3], [3, 2, 1]) == pytest.approx(-1.0)

    def test_self_correlation(self):
        x = [3.2, 1.5, 8.8, 4.1, 0.3]
        assert pearson_correlation(x, x) == pytest.approx(1.0)

    def test_symmetric(self):
        x = [1.0, 4.0, 2.0, 8.0, 5.0]
        y = [2.0, 1.0, 7.0, 3.0, 9.0]
        assert pearson_correlation(x, y) == pytest.approx(pearson_correlation(y, x))

    def test_constant_series_is_zero(self):
        r = pearson_correlation([1, 1, 1, 1], [5, 6, 7, 8])
        assert r == 0
        assert not math.isnan(r)
        assert pearson_correlation([5, 6, 7, 8], [0.1, 0.1, 0.1, 0.1]) == 0

    def test_empty_is_zero(self):
        assert pearson_correlation([], []) == 0.0
        assert pearson_correlation([1, 2, 3], []) == 0.0

    def test_absent_values_are_skipped(self):
        x = [1, None, 2, 'n/a', 3]
        y = [2, 100, 4, 100, 6]
        assert pearson_correlation(x, y) == pytest.approx(1.0)

    def test_population_formula(self):
        x = [1.0, 2.0, 4.0, 7.0]
        y = [2.0, 3.0, 3.0, 8.0]
        assert pearson_correlation(x, y) == pytest.approx(np.corrcoef(x, y)[0, 1])


class TestPValue:

    def test_needs_three_samples(self):
        assert math.isnan(pearson_p_value(0.5, 2))
        assert math.isnan(pearson_p_value(float('nan'), 10))

    def test_edges(self):
        assert pearson_p_value(1.0, 10) == 0
        assert pearson_p_value(-1.0, 10) == 0
        assert pearson_p_value(0.0, 10) == 1

    def test_matches_t_distribution(self):
        # r = 0.5, n = 12: t = 0.5 * sqrt(10 / 0.75) = 1.8257, two-tailed p ~ 0.098
        assert pearson_p_value(0.5, 12) == pytest.approx(0.0979, abs=1e-3)

    def test_sign_does_not_matter(self):
        assert pearson_p_value(0.3, 20) == pytest.approx(pearson_p_value(-0.3, 20))


class TestLinearFit:

    def test_exact_line(self):
        fit = linear_fit([1, 2, 3, 4, 5], [2, 4, 6, 8, 10])
        assert fit.slope == pytest.approx(2)
        assert fit.intercept == pytest.approx(0)
        assert fit.n == 5
        assert fit.r_squared == pytest.approx(1.0)
        assert list(fit.predict([0, 10])) == pytest.approx([0, 20])

    def test_no_spread_is_none(self):
        assert linear_fit([3, 3, 3], [1, 2, 3]) is None
        assert linear_fit([], []) is None

    def test_skips_absent_pairs(self):
        fit = linear_fit([0, 1, None, 2], [1, 3, 50, 5])
        assert fit.slope == pytest.approx(2)
        assert fit.intercept == pytest.approx(1)


class TestDescriptiveStatistics:

    def test_basic(self):
        summary = descriptive_statistics([4, 1, 3, 2])
        assert summary.mean == pytest.approx(2.5)
        # upper-middle element for even counts
        assert summary.median == 3
        assert summary.range == (1, 4)
        assert summary.std == pytest.approx(math.sqrt(1.25))

    def test_odd_median(self):
        assert descriptive_statistics([5, 1, 3]).median == 3

    def test_ignores_absent(self):
        summary = descriptive_statistics([1.0, None, 3.0, 'bad'])
        assert summary.count == 2
        assert summary.missing == 2
        assert summary.mean == pytest.approx(2.0)

    def test_empty_is_none(self):
        assert descriptive_statistics([]) is None
        assert descriptive_statistics([None, None]) is None

    def test_invariants(self):
        rng = np.random.default_rng(7)
        for _ in range(20):
            values = rng.normal(size=rng.integers(1, 30)).tolist()
            summary = descriptive_statistics(values)
            assert summary.std >= 0
            assert summary.minimum <= summary.mean <= summary.maximum


class TestOutliers:

    def test_flags_extreme_value(self):
        result = iqr_outliers([1, 2, 3, 4, 100], 1.5)
        assert result.indices == {4}
        assert result.q1 == 2
        assert result.q3 == 4
        assert result.iqr == 2

    def test_large_multiplier_flags_nothing(self):
        assert iqr_outliers([1, 2, 3, 4, 100], 50).indices == frozenset()

    def test_requires_four_finite_values(self):
        result = iqr_outliers([1, 2, None, 100])
        assert result.indices == frozenset()
        assert result.iqr is None

    def test_non_finite_never_flagged(self):
        result = iqr_outliers([1, 2, None, 3, 4, float('nan'), 100])
        assert result.indices == {6}

    def test_rerun_on_filtered_series(self):
        series = [1, 2, 3, 4, 5, 6, 7, 8, 100, -50]
        first = iqr_outliers(series)
        filtered = [v for i, v in enumerate(series) if i not in first.indices]
        second = iqr_outliers(filtered)
        assert len(second.indices) <= len(first.indices)
        for i in second.indices:
            assert not second.lower_bound <= filtered[i] <= second.upper_bound

    def test_bivariate_tags(self):
        x = [1, 2, 3, 4, 100, 2]
        y = [5, 6, 7, 8, 200, -300]
        assert bivariate_outliers(x, y) == {4: 'both', 5: 'y'}

    def test_bivariate_x_only(self):
        assert bivariate_outliers([1, 2, 3, 4, 100], [1, 2, 3, 4, 5]) == {4: 'x'}


def test_to_float_array():
    values = to_float_array([1, None, '2.5', 'x', True, np.float64(3.5), np.int64(4)])
    assert values[0] == 1
    assert math.isnan(values[1])
    # numeric-looking text is an invalid cell, not a number
    assert math.isnan(values[2])
    assert math.isnan(values[3])
    assert math.isnan(values[4])
    assert values[5] == 3.5
    assert values[6] == 4


def test_invalid_text_cell_excluded_from_statistics(config):
    rows = sample_rows(5)
    rows[3]['pH'] = '100'
    dataset = DataLoader(config).load_bytes(to_xlsx(pd.DataFrame(rows)), file_type='xlsx')

    ph = resolve(dataset, 'pH')
    assert ph[3] == '100'
    assert any(w.column == 'pH' and w.row == 3 for w in dataset.warnings)

    summary = descriptive_statistics(ph)
    assert summary.count == 4
    assert summary.missing == 1
    assert summary.maximum == pytest.approx(6.9)
    assert iqr_outliers(ph + ph).indices == frozenset()
    fit = linear_fit(resolve(dataset, 'Avg Temperature'), ph)
    assert fit.n == 4
    assert fit.slope == pytest.approx(0.1)


class TestStatisticalAnalysis:

    def test_analyze_relationship(self):
        result = StatisticalAnalysis().analyze_relationship([1, 2, 3, 4, 5], [2, 4, 6, 8, 10])
        assert result['correlation'] == pytest.approx(1.0)
        assert result['p_value'] == pytest.approx(0, abs=1e-9)
        assert result['n'] == 5
        assert result['fit'].slope == pytest.approx(2)
        assert result['outliers'] == {}
        assert result['x_summary'].median == 3

    def test_uses_configured_multiplier(self):
        config = Config()
        config.statistics.iqr_multiplier = 50
        result = StatisticalAnalysis(config).analyze_relationship([1, 2, 3, 4, 100], [1, 2, 3, 4, 5])
        assert result['outliers'] == {}

    def test_correlation_matrix(self, dataset):
        labels = ['Avg Temperature', 'Richness', 'Phosphate']
        matrix = StatisticalAnalysis().correlation_matrix(dataset, labels)
        assert list(matrix.index) == labels
        assert matrix.loc['Avg Temperature', 'Richness'] == pytest.approx(1.0)
        # all-absent series correlates to 0
        assert matrix.loc['Phosphate', 'Richness'] == 0

    def test_rank_relationships(self, dataset):
        ranked = StatisticalAnalysis().rank_relationships(
            dataset, ['Avg Temperature', 'Carbonate '], ['Richness', "Simpson's index"], top_n=3)
        assert len(ranked) == 3
        strengths = [rel['abs_correlation'] for rel in ranked]
        assert strengths == sorted(strengths, reverse=True)
        assert ranked[0]['abs_correlation'] == pytest.approx(1.0)
        assert all(rel['x_variable'] != 'Carbonate ' for rel in ranked[:2])

    def test_rank_relationships_keeps_sign(self, dataset):
        ranked = StatisticalAnalysis().rank_relationships(
            dataset, ['Avg Temperature'], ['Richness', "Simpson's index"])
        by_target = {rel['y_variable']: rel for rel in ranked}
        assert by_target['Richness']['correlation'] == pytest.approx(1.0)
        assert by_target["Simpson's index"]['correlation'] == pytest.approx(-1.0)
        assert by_target["Simpson's index"]['abs_correlation'] == pytest.approx(1.0)
