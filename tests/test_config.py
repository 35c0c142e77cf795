import json
import logging

import pytest

from gsheet.config import SheetOptions, describe, load_credentials
from gsheet.errors import ConfigError

_ENV_KEYS = (
    "GSHEET_SPREADSHEET_ID",
    "GSHEET_RANGE",
    "GSHEET_HEADER_ROWS",
    "GSHEET_PRELOAD",
    "GSHEET_REFRESH_INTERVAL_SEC",
    "GSPREAD_CREDENTIALS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_from_env_reads_all_options(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GSHEET_SPREADSHEET_ID", "abc")
    monkeypatch.setenv("GSHEET_RANGE", "Signups")
    monkeypatch.setenv("GSHEET_HEADER_ROWS", "2")
    monkeypatch.setenv("GSHEET_PRELOAD", "yes")
    monkeypatch.setenv("GSHEET_REFRESH_INTERVAL_SEC", "90")

    options = SheetOptions.from_env()

    assert options == SheetOptions("abc", "Signups", header_rows=2, preload=True, interval=90.0)


def test_from_env_overrides_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GSHEET_SPREADSHEET_ID", "abc")
    monkeypatch.setenv("GSHEET_RANGE", "Signups")

    options = SheetOptions.from_env(range="Other", header_rows=0, interval=None)

    assert options.range == "Other"
    assert options.header_rows == 0
    assert options.interval is None
    assert options.preload is False


def test_from_env_requires_spreadsheet_and_range(monkeypatch: pytest.MonkeyPatch) -> None:
    with pytest.raises(ConfigError, match="GSHEET_SPREADSHEET_ID"):
        SheetOptions.from_env()
    monkeypatch.setenv("GSHEET_SPREADSHEET_ID", "abc")
    with pytest.raises(ConfigError, match="GSHEET_RANGE"):
        SheetOptions.from_env()


def test_invalid_numbers_fall_back(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    monkeypatch.setenv("GSHEET_SPREADSHEET_ID", "abc")
    monkeypatch.setenv("GSHEET_RANGE", "Signups")
    monkeypatch.setenv("GSHEET_HEADER_ROWS", "first")
    monkeypatch.setenv("GSHEET_REFRESH_INTERVAL_SEC", "-5")
    caplog.set_level(logging.WARNING, logger="gsheet.config")

    options = SheetOptions.from_env()

    assert options.header_rows == 1
    assert options.interval is None
    assert any("GSHEET_HEADER_ROWS" in record.message for record in caplog.records)


def test_unknown_override_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GSHEET_SPREADSHEET_ID", "abc")
    monkeypatch.setenv("GSHEET_RANGE", "Signups")
    with pytest.raises(ConfigError, match="colour"):
        SheetOptions.from_env(colour="blue")


def test_options_validate_values() -> None:
    with pytest.raises(ConfigError):
        SheetOptions("", "Sheet1")
    with pytest.raises(ConfigError):
        SheetOptions("abc", "Sheet1", header_rows=-1)
    with pytest.raises(ConfigError):
        SheetOptions("abc", "Sheet1", interval=0)


def test_load_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    with pytest.raises(ConfigError):
        load_credentials()
    monkeypatch.setenv("GSPREAD_CREDENTIALS", "not json")
    with pytest.raises(ConfigError):
        load_credentials()
    monkeypatch.setenv("GSPREAD_CREDENTIALS", "[1, 2]")
    with pytest.raises(ConfigError):
        load_credentials()
    monkeypatch.setenv("GSPREAD_CREDENTIALS", json.dumps({"type": "service_account"}))
    assert load_credentials() == {"type": "service_account"}


def test_describe_masks_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    secret = json.dumps({"type": "service_account", "private_key": "-----BEGIN KEY-----"})
    monkeypatch.setenv("GSPREAD_CREDENTIALS", secret)

    snapshot = describe(SheetOptions("abc", "Signups"))

    assert snapshot["GSHEET_SPREADSHEET_ID"] == "abc"
    assert snapshot["GSHEET_REFRESH_INTERVAL_SEC"] == "—"
    assert snapshot["GSPREAD_CREDENTIALS"].startswith("***sa-json:len=")
    assert "private_key" not in json.dumps(snapshot)
