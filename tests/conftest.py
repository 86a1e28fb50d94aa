"""Shared fixtures: in-memory workbooks and a clean configuration per test."""

import io
import sys
from pathlib import Path

import pytest
from openpyxl import Workbook

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from config import ConfigurationManager  # noqa: E402
from reconciler.input_handler import RawGrid  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_config():
    """Every test starts from settings.yaml without in-memory overrides."""
    ConfigurationManager.reset()
    yield
    ConfigurationManager.reset()


def build_workbook(rows, title="Sheet1") -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = title
    for row in rows:
        sheet.append(list(row))
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def workbook_bytes():
    """Factory turning a list of rows into .xlsx bytes."""
    return build_workbook


@pytest.fixture
def make_grid():
    def _make(rows, source_name="test.xlsx"):
        return RawGrid.from_rows([list(r) for r in rows], source_name=source_name)
    return _make
