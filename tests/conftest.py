import io

import pandas as pd
import pytest

from biovista.config import Config
from biovista.data_loader import DataLoader


def sample_rows(n=10):
    rows = []
    for i in range(n):
        rows.append({
            'Sample Code': f'S{i:03d}',
            'Barcode': f'BC{i}',
            'Date': '2023-05-01',
            'Latitude': 34.0 + i * 0.1,
            'Longitude': -118.0 - i * 0.1,
            'Elevation': 100 + 10 * i,
            'Avg Temperature': 10.0 + i,
            'Departure': 0.5 * (i % 3),
            'pH': 6.5 + 0.1 * i,
            'General hardness (calcium carbonate)': 120 + i,
            'Total alkalinity ': 80 + 2 * i,
            'Carbonate ': 5.0,
            'Phosphate': None,
            'Nitrate  ': 1.0 + 0.5 * i,
            'Nitrite ': 0.1 * i,
            'Free chlorine': 0.0,
            'Radioactivity above background': 'Yes' if i % 2 == 0 else 'no',
            'Shannon diversity index': 2.0 + 0.1 * i,
            "Simpson's index": 0.8 - 0.01 * i,
            "Inverse Simpson's index": 5.0 + i,
            'Berger Parker index': 0.3,
            'Effective number of species': 7.0 + i,
            "Fisher's alpha": 3.0 + 0.2 * i,
            "Pielou's evenness": 0.7,
            'Richness': 20 + i,
            'Soil Type': 'Loam',
            'Ecoregion': 'Chaparral',
        })
    return rows


def to_xlsx(frame):
    buffer = io.BytesIO()
    frame.to_excel(buffer, index=False, engine='openpyxl')
    return buffer.getvalue()


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def sample_frame():
    return pd.DataFrame(sample_rows())


@pytest.fixture
def sample_xlsx(sample_frame):
    return to_xlsx(sample_frame)


@pytest.fixture
def dataset(config, sample_xlsx):
    return DataLoader(config).load_bytes(sample_xlsx, file_type='xlsx', source_name='samples.xlsx')
