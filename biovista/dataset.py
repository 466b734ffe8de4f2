"""
Canonical dataset model for BioVista.

The dataset is built once by ``data_loader`` and never mutated afterwards;
resolver, statistics and column detection receive it read-only.

Missing cells are modelled as ``None`` (not ``NaN`` and never zero).  Raw
values of the wrong type are kept in place so that index ``i`` refers to the
same sample in every series.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import pandas as pd

from biovista.config import FieldTypeWarning

METADATA = "metadata"
ENVIRONMENTAL = "environmental_factors"
DIVERSITY = "diversity_indices"

PARTITIONS = (METADATA, ENVIRONMENTAL, DIVERSITY)

Series = Tuple[Any, ...]


@dataclass(frozen=True)
class ColumnSpec:
    """One known spreadsheet header and where its values land.

    Parameters
    ----------
    header : str
        Header text exactly as the sample template spells it, trailing
        spaces included (e.g. ``"Nitrate  "``).
    targets : tuple of (partition, key)
        Every series this column feeds.  Latitude and longitude feed both
        the metadata and the environmental partitions.
    kind : str
        ``"number"``, ``"string"``, ``"date"`` or ``"boolean"``.
    """
    header: str
    targets: Tuple[Tuple[str, str], ...]
    kind: str = "number"


COLUMN_SPECS: Tuple[ColumnSpec, ...] = (
    ColumnSpec("Sample Code", ((METADATA, "sample_codes"),), "string"),
    ColumnSpec("Barcode", ((METADATA, "barcodes"),), "string"),
    ColumnSpec("Original Qubit (ng/ul)", ((METADATA, "concentrations"),)),
    ColumnSpec("Reads assigned", ((METADATA, "reads_assigned"),)),
    ColumnSpec("Date", ((METADATA, "dates"),), "date"),
    ColumnSpec("Latitude", ((METADATA, "latitude"), (ENVIRONMENTAL, "latitude"))),
    ColumnSpec("Longitude", ((METADATA, "longitude"), (ENVIRONMENTAL, "longitude"))),
    ColumnSpec("Elevation", ((ENVIRONMENTAL, "elevation"),)),
    ColumnSpec("Avg Temperature", ((ENVIRONMENTAL, "temperature"),)),
    ColumnSpec("Departure", ((ENVIRONMENTAL, "departure"),)),
    ColumnSpec("pH", ((ENVIRONMENTAL, "ph"),)),
    ColumnSpec("General hardness (calcium carbonate)", ((ENVIRONMENTAL, "hardness"),)),
    ColumnSpec("Total alkalinity ", ((ENVIRONMENTAL, "alkalinity"),)),
    ColumnSpec("Carbonate ", ((ENVIRONMENTAL, "carbonate"),)),
    ColumnSpec("Phosphate", ((ENVIRONMENTAL, "phosphate"),)),
    ColumnSpec("Nitrate  ", ((ENVIRONMENTAL, "nitrate"),)),
    ColumnSpec("Nitrite ", ((ENVIRONMENTAL, "nitrite"),)),
    ColumnSpec("Free chlorine", ((ENVIRONMENTAL, "chlorine"),)),
    ColumnSpec("Radioactivity above background", ((ENVIRONMENTAL, "radioactivity"),), "boolean"),
    ColumnSpec("Shannon diversity index", ((DIVERSITY, "shannon"),)),
    ColumnSpec("Simpson's index", ((DIVERSITY, "simpson"),)),
    ColumnSpec("Inverse Simpson's index", ((DIVERSITY, "inverse_simpson"),)),
    ColumnSpec("Berger Parker index", ((DIVERSITY, "berger_parker"),)),
    ColumnSpec("Effective number of species", ((DIVERSITY, "effective_species"),)),
    ColumnSpec("Fisher's alpha", ((DIVERSITY, "fishers_alpha"),)),
    ColumnSpec("Pielou's evenness", ((DIVERSITY, "pielou_evenness"),)),
    ColumnSpec("Richness", ((DIVERSITY, "richness"),)),
    ColumnSpec("Soil Type", ((METADATA, "soil_types"),), "string"),
    ColumnSpec("Specific soil type name", ((METADATA, "soil_type_names"),), "string"),
    ColumnSpec("Rock Type", ((METADATA, "rock_types"),), "string"),
    ColumnSpec("Esri Symbology (Rock Age)", ((METADATA, "rock_ages"),), "string"),
    ColumnSpec("Ecoregion", ((METADATA, "ecoregions"),), "string"),
)


def partition_keys(partition: str) -> List[str]:
    """Internal keys of one partition, in vocabulary order"""
    keys: List[str] = []
    for spec in COLUMN_SPECS:
        for part, key in spec.targets:
            if part == partition and key not in keys:
                keys.append(key)
    return keys


def is_absent(value: Any) -> bool:
    """True for an empty cell: ``None`` or a float NaN left by a parser"""
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _freeze(partition: Mapping[str, Any]) -> Mapping[str, Series]:
    return MappingProxyType({key: tuple(values) for key, values in partition.items()})


@dataclass(frozen=True)
class CanonicalDataset:
    """Complete normalized dataset for one uploaded file.

    Parameters
    ----------
    metadata : mapping of str to tuple
        Sample codes, dates, coordinates and descriptive passthrough fields.
    environmental_factors : mapping of str to tuple
        Numeric environmental series keyed by internal name (``"ph"``).
    diversity_indices : mapping of str to tuple
        Numeric diversity-metric series (``"shannon"``, ``"richness"`` ...).
    warnings : tuple of FieldTypeWarning
        Diagnostics collected while building the dataset.
    source_name : str or None
        File name the dataset was loaded from, for logging.
    """
    metadata: Mapping[str, Series]
    environmental_factors: Mapping[str, Series]
    diversity_indices: Mapping[str, Series]
    warnings: Tuple[FieldTypeWarning, ...] = field(default=(), compare=False)
    source_name: Optional[str] = None

    def __post_init__(self):
        for name in PARTITIONS:
            object.__setattr__(self, name, _freeze(getattr(self, name)))
        object.__setattr__(self, "warnings", tuple(self.warnings))

        lengths = {len(values) for _, _, values in self.iter_series()}
        if len(lengths) > 1:
            raise ValueError(f"All series must have the same length, got {sorted(lengths)}")

    @property
    def n_samples(self) -> int:
        for _, _, values in self.iter_series():
            return len(values)
        return 0

    def partition(self, name: str) -> Mapping[str, Series]:
        if name not in PARTITIONS:
            raise KeyError(f"Unknown partition: {name}")
        return getattr(self, name)

    def iter_series(self) -> Iterator[Tuple[str, str, Series]]:
        """Yield ``(partition, key, values)`` for every series"""
        for name in PARTITIONS:
            for key, values in getattr(self, name).items():
                yield name, key, values

    def to_frame(self) -> pd.DataFrame:
        """Tabular view with ``partition.key`` column names"""
        columns: Dict[str, Series] = {
            f"{name}.{key}": values for name, key, values in self.iter_series()
        }
        return pd.DataFrame(columns, index=range(self.n_samples))
