import logging

import pytest

from biovista.config import Config, UnresolvedVariableError
from biovista.variable_resolver import (TEMPLATE_VARIABLES, VARIABLE_ALIASES,
                                        VariableResolver, normalize_label, resolve)


def test_direct_key_match(dataset):
    assert resolve(dataset, 'ph') is dataset.environmental_factors['ph']
    assert resolve(dataset, 'shannon') is dataset.diversity_indices['shannon']


def test_alias_match_keeps_trailing_spaces(dataset):
    assert resolve(dataset, 'Nitrate  ') == dataset.environmental_factors['nitrate']
    assert resolve(dataset, 'Avg Temperature') == dataset.environmental_factors['temperature']
    assert resolve(dataset, "Fisher's alpha") == dataset.diversity_indices['fishers_alpha']


def test_normalized_fallback(dataset):
    assert resolve(dataset, 'nitrate') == dataset.environmental_factors['nitrate']
    assert resolve(dataset, 'NITRATE ') == dataset.environmental_factors['nitrate']
    assert resolve(dataset, 'Inverse Simpson') == dataset.diversity_indices['inverse_simpson']


def test_every_alias_resolves_to_full_length(dataset):
    for label in VARIABLE_ALIASES:
        assert len(resolve(dataset, label)) == dataset.n_samples


def test_template_catalogue_matches_aliases():
    assert [v.value for v in TEMPLATE_VARIABLES] == list(VARIABLE_ALIASES)


def test_unresolved_returns_empty_and_warns(dataset, caplog):
    with caplog.at_level(logging.WARNING, logger='biovista.data'):
        assert resolve(dataset, 'Salinity') == ()
    assert 'Salinity' in caplog.text


def test_metadata_keys_are_not_resolved(dataset):
    assert resolve(dataset, 'sample_codes') == ()


def test_strict_mode_raises(dataset):
    with pytest.raises(UnresolvedVariableError) as excinfo:
        resolve(dataset, 'Salinity', strict=True)
    assert excinfo.value.label == 'Salinity'
    assert isinstance(excinfo.value, KeyError)


def test_resolver_uses_config(dataset):
    config = Config()
    config.resolver.strict = True
    resolver = VariableResolver(config)

    assert resolver.resolve(dataset, 'pH') == dataset.environmental_factors['ph']
    with pytest.raises(UnresolvedVariableError):
        resolver.resolve(dataset, 'unknown')


def test_resolve_many(dataset):
    result = VariableResolver().resolve_many(dataset, ['pH', 'Richness'])
    assert set(result) == {'pH', 'Richness'}
    assert result['Richness'] == dataset.diversity_indices['richness']


def test_normalize_label():
    assert normalize_label(' Effective  Species ') == 'effectivespecies'
    assert normalize_label('effective_species') == 'effectivespecies'
