"""
Column Detection Module for BioVista
====================================
Heuristic classification of dataset columns into environmental, diversity
and metadata types by matching their names against pattern libraries.
"""

import json
import re
from dataclasses import dataclass, replace
from importlib import resources
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from biovista.config import Config, ConfigurationError, coordinate_key_set
from biovista.dataset import DIVERSITY as DIVERSITY_PARTITION
from biovista.dataset import ENVIRONMENTAL as ENVIRONMENTAL_PARTITION
from biovista.dataset import METADATA as METADATA_PARTITION
from biovista.dataset import CanonicalDataset, is_absent
from biovista.logging_config import get_analysis_logger
from biovista.variable_resolver import DIVERSITY_GROUP, ENVIRONMENTAL_GROUP, VariableOption

logger = get_analysis_logger()

ENVIRONMENTAL = "environmental"
DIVERSITY = "diversity"
METADATA = "metadata"
UNKNOWN = "unknown"

COLUMN_TYPES = (ENVIRONMENTAL, DIVERSITY, METADATA, UNKNOWN)

# None covers columns built by hand rather than read from a dataset
ANALYSABLE_PARTITIONS = (ENVIRONMENTAL_PARTITION, DIVERSITY_PARTITION, None)

TYPE_DESCRIPTIONS = {
    ENVIRONMENTAL: 'Environmental measurement or parameter',
    DIVERSITY: 'Biodiversity or species diversity metric',
    METADATA: 'Sample or site metadata',
    UNKNOWN: 'Could not determine the type of this column',
}


def describe_type(column_type: str) -> str:
    return TYPE_DESCRIPTIONS.get(column_type, TYPE_DESCRIPTIONS[UNKNOWN])


@dataclass(frozen=True)
class DetectedColumn:
    name: str
    type: str
    confidence: float
    description: str
    # Dataset partition the series was read from; None when not from a dataset
    partition: Optional[str] = None


@dataclass(frozen=True)
class PatternLibrary:
    """Compiled, case-insensitive name patterns for one column type"""
    column_type: str
    patterns: Tuple[re.Pattern, ...]

    @classmethod
    def from_strings(cls, column_type: str, patterns: Iterable[str]) -> "PatternLibrary":
        return cls(column_type, tuple(re.compile(p, re.IGNORECASE) for p in patterns))

    def match_count(self, name: str) -> int:
        return sum(1 for pattern in self.patterns if pattern.search(name))


def load_pattern_libraries(path: Optional[Path] = None) -> Dict[str, PatternLibrary]:
    """Load the three libraries from JSON (bundled patterns.json by default)"""
    try:
        if path is None:
            text = resources.files("biovista").joinpath("data/patterns.json").read_text(encoding="utf-8")
        else:
            text = Path(path).read_text(encoding="utf-8")
        raw = json.loads(text)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not load pattern libraries: {e}") from e

    libraries = {}
    for column_type in (ENVIRONMENTAL, DIVERSITY, METADATA):
        if column_type not in raw:
            raise ConfigurationError(f"Pattern file has no {column_type!r} library")
        try:
            libraries[column_type] = PatternLibrary.from_strings(column_type, raw[column_type])
        except re.error as e:
            raise ConfigurationError(f"Invalid {column_type} pattern: {e}") from e

    logger.debug(f"Loaded pattern libraries version {raw.get('version', 'unversioned')}")
    return libraries


def normalize_column_name(name: str) -> str:
    name = re.sub(r"[_-]", " ", name.lower())
    return re.sub(r"\s+", " ", name).strip()


def pattern_confidence(name: str, library: PatternLibrary, step: float = 0.2) -> float:
    """``min(matches * step, 1.0)`` over the distinct patterns matching the name"""
    return min(library.match_count(normalize_column_name(name)) * step, 1.0)


class ColumnDetector:
    """Classifies the columns of a canonical dataset"""

    def __init__(self, config: Optional[Config] = None,
                 libraries: Optional[Mapping[str, PatternLibrary]] = None):
        self.config = config or Config()
        self.libraries = dict(libraries or load_pattern_libraries(self.config.detection.pattern_file))
        self.coordinate_keys = coordinate_key_set(self.config)

    def classify(self, name: str) -> DetectedColumn:
        """Classify a single column name"""
        normalized = normalize_column_name(name)
        if normalized in self.coordinate_keys:
            return DetectedColumn(name, METADATA, 1.0, 'Geographic coordinate')

        step = self.config.detection.confidence_step
        scores = {
            column_type: pattern_confidence(normalized, library, step)
            for column_type, library in self.libraries.items()
        }

        best_type, best_score = max(scores.items(), key=lambda item: item[1])
        tied = [t for t, s in scores.items() if s == best_score]
        if best_score == 0 or len(tied) > 1:
            return DetectedColumn(name, UNKNOWN, 0.0, describe_type(UNKNOWN))
        return DetectedColumn(name, best_type, best_score, describe_type(best_type))

    def detect(self, dataset: CanonicalDataset) -> List[DetectedColumn]:
        """
        Classify every populated column of the dataset

        Columns whose values are all absent are skipped.  When a name occurs
        in more than one partition the highest-confidence record is kept, and
        it points at the analysable partition when there is one.

        Returns:
            Detected columns sorted by descending confidence
        """
        best: Dict[str, DetectedColumn] = {}
        skipped = []

        for partition, key, values in dataset.iter_series():
            if all(is_absent(v) for v in values):
                skipped.append(f"{partition}.{key}")
                continue

            column = replace(self.classify(key), partition=partition)
            current = best.get(key)
            if current is None or column.confidence > current.confidence:
                best[key] = column
            elif current.partition == METADATA_PARTITION and column.confidence == current.confidence:
                best[key] = replace(current, partition=partition)

        if skipped:
            logger.info(f"Skipped empty columns: {skipped}")

        columns = sorted(best.values(), key=lambda c: c.confidence, reverse=True)
        logger.info(f"Detected {len(columns)} columns: {categorize_columns(columns)}")
        return columns


def review_columns(columns: List[DetectedColumn],
                   overrides: Mapping[str, str]) -> List[DetectedColumn]:
    """Apply reviewer type overrides by column name, recomputing descriptions"""
    for name, column_type in overrides.items():
        if column_type not in COLUMN_TYPES:
            raise ValueError(f"Unknown column type for {name!r}: {column_type!r}")

    reviewed = []
    for column in columns:
        new_type = overrides.get(column.name)
        if new_type is None or new_type == column.type:
            reviewed.append(column)
        else:
            reviewed.append(replace(column, type=new_type, description=describe_type(new_type)))
    return reviewed


def categorize_columns(columns: Iterable[DetectedColumn]) -> Dict[str, List[str]]:
    groups: Dict[str, List[str]] = {t: [] for t in COLUMN_TYPES}
    for column in columns:
        groups[column.type].append(column.name)
    return groups


def variables_from_columns(columns: Iterable[DetectedColumn]) -> List[VariableOption]:
    """Selectable variables for every non-metadata column.

    Columns read from the metadata partition are never offered, whatever
    their detected type; the resolver only reads measurement partitions.
    """
    groups = {ENVIRONMENTAL: ENVIRONMENTAL_GROUP, DIVERSITY: DIVERSITY_GROUP}
    variables = []
    for column in columns:
        if column.type == METADATA or column.partition not in ANALYSABLE_PARTITIONS:
            continue
        label = " ".join(word[:1].upper() + word[1:] for word in re.split(r"[_-]", column.name))
        variables.append(VariableOption(
            value=column.name,
            label=label,
            description=column.description,
            group=groups.get(column.type, 'Other'),
        ))
    return variables
