"""
Variable Resolver Module for BioVista
=====================================
Maps a human-facing variable label to a series of the canonical dataset.

Lookup order, first hit wins:

1. the label is itself an environmental or diversity key (``"ph"``)
2. the label is a display name from ``VARIABLE_ALIASES`` (``"Nitrate  "``)
3. whitespace/underscore-insensitive, case-insensitive key match (``"nitrate"``)

An unresolved label yields an empty tuple and a warning, or raises
``UnresolvedVariableError`` in strict mode.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from biovista.config import Config, UnresolvedVariableError
from biovista.dataset import DIVERSITY, ENVIRONMENTAL, CanonicalDataset, Series
from biovista.logging_config import get_data_logger

logger = get_data_logger()

ENVIRONMENTAL_GROUP = "Environmental Factors"
DIVERSITY_GROUP = "Diversity Indices"

# Display labels keep the trailing spaces of the sample template headers
VARIABLE_ALIASES: Dict[str, str] = {
    'Avg Temperature': 'temperature',
    'Departure': 'departure',
    'pH': 'ph',
    'Elevation': 'elevation',
    'General hardness (calcium carbonate)': 'hardness',
    'Total alkalinity ': 'alkalinity',
    'Carbonate ': 'carbonate',
    'Phosphate': 'phosphate',
    'Nitrate  ': 'nitrate',
    'Nitrite ': 'nitrite',
    'Free chlorine': 'chlorine',
    'Radioactivity above background': 'radioactivity',
    'Longitude': 'longitude',
    'Latitude': 'latitude',
    'Shannon diversity index': 'shannon',
    "Simpson's index": 'simpson',
    "Inverse Simpson's index": 'inverse_simpson',
    'Berger Parker index': 'berger_parker',
    'Effective number of species': 'effective_species',
    "Fisher's alpha": 'fishers_alpha',
    "Pielou's evenness": 'pielou_evenness',
    'Richness': 'richness',
}


@dataclass(frozen=True)
class VariableOption:
    """A selectable variable as offered to the plot configuration"""
    value: str
    label: str
    description: str
    group: str


TEMPLATE_VARIABLES: Tuple[VariableOption, ...] = (
    VariableOption('Avg Temperature', 'Temperature', 'Average temperature measurements', ENVIRONMENTAL_GROUP),
    VariableOption('Departure', 'Departure', 'Temperature departure from normal', ENVIRONMENTAL_GROUP),
    VariableOption('pH', 'pH', 'Water pH level', ENVIRONMENTAL_GROUP),
    VariableOption('Elevation', 'Elevation', 'Site elevation above sea level', ENVIRONMENTAL_GROUP),
    VariableOption('General hardness (calcium carbonate)', 'Hardness',
                   'General hardness (calcium carbonate)', ENVIRONMENTAL_GROUP),
    VariableOption('Total alkalinity ', 'Total Alkalinity', 'Total alkalinity measurements', ENVIRONMENTAL_GROUP),
    VariableOption('Carbonate ', 'Carbonate', 'Carbonate concentration', ENVIRONMENTAL_GROUP),
    VariableOption('Phosphate', 'Phosphate', 'Phosphate concentration', ENVIRONMENTAL_GROUP),
    VariableOption('Nitrate  ', 'Nitrate', 'Nitrate concentration', ENVIRONMENTAL_GROUP),
    VariableOption('Nitrite ', 'Nitrite', 'Nitrite concentration', ENVIRONMENTAL_GROUP),
    VariableOption('Free chlorine', 'Free Chlorine', 'Free chlorine concentration', ENVIRONMENTAL_GROUP),
    VariableOption('Radioactivity above background', 'Radioactivity',
                   'Radioactivity above background', ENVIRONMENTAL_GROUP),
    VariableOption('Longitude', 'Longitude', 'Geographic longitude', ENVIRONMENTAL_GROUP),
    VariableOption('Latitude', 'Latitude', 'Geographic latitude', ENVIRONMENTAL_GROUP),
    VariableOption('Shannon diversity index', 'Shannon Index', 'Shannon diversity index', DIVERSITY_GROUP),
    VariableOption("Simpson's index", "Simpson's Index", "Simpson's diversity index", DIVERSITY_GROUP),
    VariableOption("Inverse Simpson's index", "Inverse Simpson's Index",
                   "Inverse Simpson's diversity index", DIVERSITY_GROUP),
    VariableOption('Berger Parker index', 'Berger-Parker Index', 'Berger-Parker dominance index', DIVERSITY_GROUP),
    VariableOption('Effective number of species', 'Effective Species', 'Effective number of species', DIVERSITY_GROUP),
    VariableOption("Fisher's alpha", "Fisher's Alpha", "Fisher's alpha diversity index", DIVERSITY_GROUP),
    VariableOption("Pielou's evenness", "Pielou's Evenness", "Pielou's species evenness index", DIVERSITY_GROUP),
    VariableOption('Richness', 'Richness', 'Species richness', DIVERSITY_GROUP),
)


def normalize_label(label: str) -> str:
    return re.sub(r"[\s_]+", "", label).lower()


def _lookup_key(dataset: CanonicalDataset, key: str) -> Optional[Series]:
    for partition in (ENVIRONMENTAL, DIVERSITY):
        series = dataset.partition(partition)
        if key in series:
            return series[key]
    return None


def resolve(dataset: CanonicalDataset, label: str, strict: bool = False) -> Series:
    """Return the series a display label refers to

    Args:
        dataset: Loaded canonical dataset
        label: Internal key or display label, e.g. ``"Avg Temperature"``
        strict: Raise instead of returning an empty series

    Returns:
        The matching series, or ``()`` when nothing matches
    """
    series = _lookup_key(dataset, label)
    if series is not None:
        return series

    internal_name = VARIABLE_ALIASES.get(label)
    if internal_name is not None:
        series = _lookup_key(dataset, internal_name)
        if series is not None:
            return series

    wanted = normalize_label(label)
    for partition in (ENVIRONMENTAL, DIVERSITY):
        for key, values in dataset.partition(partition).items():
            if normalize_label(key) == wanted:
                return values

    if strict:
        raise UnresolvedVariableError(label)
    logger.warning(f"Variable {label!r} not found in data structure")
    return ()


class VariableResolver:
    """Resolver bound to a configuration (strict mode)"""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()

    def resolve(self, dataset: CanonicalDataset, label: str) -> Series:
        return resolve(dataset, label, strict=self.config.resolver.strict)

    def resolve_many(self, dataset: CanonicalDataset, labels: List[str]) -> Dict[str, Series]:
        return {label: self.resolve(dataset, label) for label in labels}
