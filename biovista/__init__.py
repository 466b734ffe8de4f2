"""
BioVista Core Package
=====================
Analysis core for environmental/biodiversity sample spreadsheets

This package contains the core modules of the BioVista platform:
- Configuration management and error types
- Spreadsheet ingestion into the canonical dataset
- Variable name resolution
- Statistical analysis (correlation, significance, fits, outliers)
- Column auto-detection
- Analysis session orchestration
- Logging utilities

Version: 1.0.0
License: MIT
"""

# Version information
__version__ = '1.0.0'
__author__ = 'BioVista Team'
__license__ = 'MIT'

# Package metadata
__all__ = [
    # Core modules
    'config',
    'dataset',
    'data_loader',
    'variable_resolver',
    'statistical_analysis',
    'column_detection',
    'analysis_session',
    'logging_config',

    # Version info
    '__version__',
    '__author__',
    '__license__'
]

# Module descriptions for documentation
MODULE_DESCRIPTIONS = {
    'config': 'Configuration management, exceptions and diagnostics',
    'dataset': 'Canonical dataset model and the known column vocabulary',
    'data_loader': 'Spreadsheet ingestion and normalization',
    'variable_resolver': 'Display label to series resolution',
    'statistical_analysis': 'Correlation, significance, OLS fit and outlier detection',
    'column_detection': 'Pattern-based column classification',
    'analysis_session': 'Loading, detection review and pairwise analysis for one file',
    'logging_config': 'Logging configuration and utilities',
}


def get_info():
    """Get package information"""
    return {
        'name': 'BioVista Core',
        'version': __version__,
        'author': __author__,
        'license': __license__,
        'modules': MODULE_DESCRIPTIONS
    }

# Note: modules are not imported here; import them at the point of use.
