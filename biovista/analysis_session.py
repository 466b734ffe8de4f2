"""
Analysis Session Module for BioVista
====================================
Owns one loaded dataset and the variable catalogue offered to the
presentation layer: loading (optionally in the background), column
auto-detection with human review, and the pairwise analyses run on the
selected variables.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd

from biovista.column_detection import (ColumnDetector, DetectedColumn,
                                       review_columns, variables_from_columns)
from biovista.config import Config
from biovista.data_loader import DataLoader
from biovista.dataset import CanonicalDataset
from biovista.logging_config import LogContext, get_logger
from biovista.statistical_analysis import StatisticalAnalysis
from biovista.variable_resolver import (DIVERSITY_GROUP, ENVIRONMENTAL_GROUP,
                                        TEMPLATE_VARIABLES, VariableOption, VariableResolver)

logger = get_logger(__name__)

TEMPLATE_MODE = "template"
TEMPLATE_AUTO_MODE = "template-auto"
FULL_AUTO_MODE = "full-auto"

ANALYSIS_MODES = (TEMPLATE_MODE, TEMPLATE_AUTO_MODE, FULL_AUTO_MODE)


class AnalysisSession:
    """Session state for one uploaded file"""

    def __init__(self, config: Optional[Config] = None, mode: str = TEMPLATE_MODE):
        if mode not in ANALYSIS_MODES:
            raise ValueError(f"Unknown analysis mode: {mode}. Expected one of {ANALYSIS_MODES}")

        self.config = config or Config()
        self.mode = mode
        self.loader = DataLoader(self.config)
        self.resolver = VariableResolver(self.config)
        self.detector = ColumnDetector(self.config)
        self.analysis = StatisticalAnalysis(self.config)

        self.dataset: Optional[CanonicalDataset] = None
        self.detected_columns: List[DetectedColumn] = []
        self.variables: List[VariableOption] = []
        self.review_pending = False
        self._executor: Optional[ThreadPoolExecutor] = None

    def load(self, content: bytes, file_type: Optional[str] = None,
             source_name: Optional[str] = None) -> CanonicalDataset:
        """Ingest a file, run detection and choose the active variables"""
        dataset = self.loader.load_bytes(content, file_type=file_type, source_name=source_name)

        with LogContext(dataset_name=dataset.source_name):
            detected = self.detector.detect(dataset)
            detected_variables = variables_from_columns(detected)

            self.dataset = dataset
            self.detected_columns = detected
            self.review_pending = False

            if self.mode == TEMPLATE_MODE:
                self.variables = list(TEMPLATE_VARIABLES)
            elif len(detected_variables) >= self.config.detection.min_detected_variables:
                logger.info(f"Using {self.mode} mode; detection awaiting review")
                self.review_pending = True
                self.variables = (list(TEMPLATE_VARIABLES) if self.mode == TEMPLATE_AUTO_MODE
                                  else detected_variables)
            else:
                logger.warning("Insufficient auto-detected columns, using template mode")
                self.variables = list(TEMPLATE_VARIABLES)

        return dataset

    def load_in_background(self, content: bytes, file_type: Optional[str] = None,
                           source_name: Optional[str] = None) -> "Future[CanonicalDataset]":
        """Run ``load`` on a worker thread; session state changes only on success"""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="biovista-load")
        return self._executor.submit(self.load, content, file_type, source_name)

    def close(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def confirm_detection(self, overrides: Optional[Mapping[str, str]] = None) -> List[VariableOption]:
        """Accept the (optionally edited) detection and use it as the catalogue"""
        self.detected_columns = review_columns(self.detected_columns, overrides or {})
        self.variables = variables_from_columns(self.detected_columns)
        self.review_pending = False
        logger.info(f"Auto-detection confirmed with {len(self.variables)} variables")
        return self.variables

    def cancel_detection(self) -> List[VariableOption]:
        self.review_pending = False
        self.variables = list(TEMPLATE_VARIABLES)
        logger.info("Auto-detection cancelled, keeping template variables")
        return self.variables

    def _require_dataset(self) -> CanonicalDataset:
        if self.dataset is None:
            raise RuntimeError("No dataset loaded")
        return self.dataset

    def _labels(self, group: str) -> List[str]:
        return [v.value for v in self.variables if v.group == group]

    def series(self, label: str):
        return self.resolver.resolve(self._require_dataset(), label)

    def analyze(self, x_label: str, y_label: str) -> Dict[str, Any]:
        return self.analysis.analyze_relationship(self.series(x_label), self.series(y_label))

    def top_relationships(self, top_n: Optional[int] = None) -> List[Dict[str, Any]]:
        return self.analysis.rank_relationships(
            self._require_dataset(),
            self._labels(ENVIRONMENTAL_GROUP),
            self._labels(DIVERSITY_GROUP),
            top_n,
        )

    def correlation_matrix(self) -> pd.DataFrame:
        labels = self._labels(ENVIRONMENTAL_GROUP) + self._labels(DIVERSITY_GROUP)
        return self.analysis.correlation_matrix(self._require_dataset(), labels)
