"""
Data Loader Module for BioVista
===============================
Parses an uploaded sample spreadsheet into the canonical dataset.
"""

import io
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from biovista.config import Config, FieldTypeWarning, ParseError
from biovista.dataset import COLUMN_SPECS, PARTITIONS, CanonicalDataset, ColumnSpec, is_absent
from biovista.logging_config import get_logger, log_data_processing, log_function_call

logger = get_logger(__name__)

_EXPECTED = {
    "number": "a number",
    "string": "text",
    "date": "a date",
    "boolean": "yes/no text",
}


def normalize_header(header: Any) -> str:
    """Lower-case a header and collapse its whitespace"""
    return re.sub(r"\s+", " ", str(header)).strip().lower()


class DataLoader:
    """Builds a CanonicalDataset from spreadsheet content"""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.supported_formats = {
            'xlsx': self._read_xlsx,
            'xls': self._read_xls,
            'csv': self._read_csv,
        }

    def load_data(self, file_path: Union[str, Path],
                  file_type: Optional[str] = None) -> CanonicalDataset:
        """
        Load a sample spreadsheet from disk

        Args:
            file_path: Path to the data file
            file_type: Type of file (auto-detected from the suffix if None)

        Returns:
            CanonicalDataset: Normalized dataset
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise ParseError(f"File not found: {file_path}")

        if file_type is None:
            file_type = file_path.suffix.lower().strip('.')

        return self.load_bytes(file_path.read_bytes(), file_type=file_type,
                               source_name=file_path.name)

    @log_function_call
    def load_bytes(self, content: bytes, file_type: Optional[str] = None,
                   source_name: Optional[str] = None) -> CanonicalDataset:
        """
        Parse raw file content into the canonical dataset

        Args:
            content: Byte content of a single-sheet spreadsheet
            file_type: 'xlsx', 'xls' or 'csv' (config default if None)
            source_name: Name used in log messages

        Returns:
            CanonicalDataset: One series per known column, one entry per row

        Raises:
            ParseError: The content is not tabular data at all
        """
        file_type = (file_type or self.config.ingestion.default_file_type).lower()
        source_name = source_name or f"upload.{file_type}"

        if file_type not in self.supported_formats:
            raise ParseError(
                f"Unsupported file format: {file_type}. "
                f"Supported formats: {list(self.supported_formats.keys())}"
            )

        logger.info(f"Loading {file_type} content: {source_name} ({len(content)} bytes)")
        df = self.supported_formats[file_type](content)
        logger.info(f"Available columns in file: {[str(c) for c in df.columns]}")

        dataset = self.build_dataset(df, source_name=source_name)

        log_data_processing("ingest", source_name, rows=dataset.n_samples,
                            issues=len(dataset.warnings))
        logger.info(f"Successfully loaded {dataset.n_samples} samples from {source_name}")
        return dataset

    def _read_xlsx(self, content: bytes) -> pd.DataFrame:
        return self._read_excel(content, engine='openpyxl')

    def _read_xls(self, content: bytes) -> pd.DataFrame:
        return self._read_excel(content, engine='xlrd')

    def _read_excel(self, content: bytes, engine: str) -> pd.DataFrame:
        """Read the configured sheet of an Excel workbook"""
        try:
            return pd.read_excel(io.BytesIO(content),
                                 sheet_name=self.config.ingestion.sheet_index,
                                 header=0,
                                 engine=engine)
        except Exception as e:
            # Any reader failure means the container is not a spreadsheet
            raise ParseError(f"Error reading Excel file: {str(e)}") from e

    def _read_csv(self, content: bytes) -> pd.DataFrame:
        """Read a CSV file, falling back through common encodings"""
        encodings = ['utf-8', 'latin-1', 'cp1252']
        for encoding in encodings:
            try:
                return pd.read_csv(io.BytesIO(content), encoding=encoding,
                                   na_values=['NA', 'N/A', 'null', 'NULL', ''])
            except UnicodeDecodeError:
                continue
            except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
                raise ParseError(f"Error reading CSV file: {str(e)}") from e
        raise ParseError("Could not decode CSV with any common encoding")

    def build_dataset(self, df: pd.DataFrame,
                      source_name: Optional[str] = None) -> CanonicalDataset:
        """Map a parsed sheet onto the fixed partitions without dropping rows"""
        headers = self._match_headers(df)
        n_rows = len(df)
        issues: List[FieldTypeWarning] = []
        partitions: Dict[str, Dict[str, List[Any]]] = {name: {} for name in PARTITIONS}

        required = {normalize_header(h) for h in self.config.ingestion.required_columns}

        for spec in COLUMN_SPECS:
            is_required = normalize_header(spec.header) in required
            column = headers.get(normalize_header(spec.header))

            if column is None:
                if is_required:
                    logger.warning(f"Required column {spec.header.strip()!r} not found")
                else:
                    logger.debug(f"Column {spec.header.strip()!r} not present; filling with gaps")
                values: List[Any] = [None] * n_rows
            else:
                values = [
                    self._convert_cell(spec, row, value, is_required, issues)
                    for row, value in enumerate(df[column].tolist())
                ]
            for partition, key in spec.targets:
                partitions[partition][key] = list(values)

        for issue in issues:
            logger.warning(str(issue))

        return CanonicalDataset(
            metadata=partitions['metadata'],
            environmental_factors=partitions['environmental_factors'],
            diversity_indices=partitions['diversity_indices'],
            warnings=tuple(issues),
            source_name=source_name,
        )

    def _match_headers(self, df: pd.DataFrame) -> Dict[str, Any]:
        """Normalized header -> actual DataFrame column, first occurrence wins"""
        headers: Dict[str, Any] = {}
        for column in df.columns:
            headers.setdefault(normalize_header(column), column)
        return headers

    def _convert_cell(self, spec: ColumnSpec, row: int, value: Any,
                      required: bool, issues: List[FieldTypeWarning]) -> Any:
        label = spec.header.strip()

        if spec.kind == "boolean":
            if isinstance(value, str):
                truthy = {v.lower() for v in self.config.ingestion.boolean_true_values}
                return 1 if value.strip().lower() in truthy else 0
            issues.append(FieldTypeWarning(label, row, _plain(value), _EXPECTED["boolean"]))
            return 0

        if is_absent(value):
            if required:
                issues.append(FieldTypeWarning(label, row, None, _EXPECTED[spec.kind]))
            return None

        value = _plain(value)
        valid, value = _check_kind(spec.kind, value)
        if not valid:
            issues.append(FieldTypeWarning(label, row, value, _EXPECTED[spec.kind]))
        return value


def _plain(value: Any) -> Any:
    """Unwrap numpy scalars and map NaN to None"""
    if is_absent(value):
        return None
    if isinstance(value, np.generic):
        return value.item()
    return value


def _check_kind(kind: str, value: Any) -> Tuple[bool, Any]:
    if kind == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool), value
    if kind == "date":
        if isinstance(value, (datetime, date)):
            return True, value.isoformat()
        return isinstance(value, str), value
    return isinstance(value, str), value
