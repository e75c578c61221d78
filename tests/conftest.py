import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # noqa: E402


@pytest.fixture(autouse=True)
def _log_files(tmp_path, monkeypatch):
    monkeypatch.setenv("ERROR_LOG_FILE", str(tmp_path / "errors.log"))
    monkeypatch.setenv("TX_LOG_FILE", str(tmp_path / "tx_log.json"))
    monkeypatch.delenv("OPS_ALERT_WEBHOOK", raising=False)
