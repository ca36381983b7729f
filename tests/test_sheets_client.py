"""Tests for the Google Sheets table client, with a mocked API service."""

from unittest.mock import MagicMock

import httplib2
from google.auth.exceptions import DefaultCredentialsError, TransportError

import pytest
from tenacity import wait_none

from portaria.exceptions import RemoteStoreError
from portaria.storage.sheets_client import SheetsClient, column_letter

HEADER = ["id", "codigo_retirada", "status", "data_entrega"]


def make_client(values):
    service = MagicMock()
    values_api = service.spreadsheets.return_value.values.return_value
    values_api.get.return_value.execute.return_value = {"values": values}
    return SheetsClient(spreadsheet_id="sheet-1", service=service), values_api


@pytest.mark.parametrize(
    "index, letter", [(1, "A"), (15, "O"), (26, "Z"), (27, "AA"), (52, "AZ"), (703, "AAA")]
)
def test_column_letter(index, letter):
    assert column_letter(index) == letter


def test_select_filters_pads_and_orders():
    client, _ = make_client([
        HEADER,
        ["1", "12345", "pendente", "2025-09-10T10:00:00+00:00"],
        ["2", "22222", "retirada"],
        ["3", "33333", "pendente", "2025-09-12T10:00:00+00:00"],
    ])

    rows = client.select(
        "Entregas", {"status": "pendente"}, order_by="data_entrega", descending=True
    )

    assert [r["id"] for r in rows] == ["3", "1"]

    withdrawn = client.select("Entregas", {"status": "retirada"})
    assert withdrawn == [
        {"id": "2", "codigo_retirada": "22222", "status": "retirada", "data_entrega": ""}
    ]


def test_select_on_empty_sheet():
    client, _ = make_client([])
    assert client.select("Entregas", {"codigo_retirada": "12345"}) == []


def test_select_failure_raises_remote_store_error(monkeypatch):
    monkeypatch.setattr(SheetsClient._read_table.retry, "wait", wait_none())
    client, values_api = make_client([HEADER])
    values_api.get.return_value.execute.side_effect = OSError("connection reset")

    with pytest.raises(RemoteStoreError):
        client.select("Entregas", {})

    assert values_api.get.return_value.execute.call_count == 3


def test_insert_appends_row_in_header_order():
    client, values_api = make_client([HEADER])

    row = client.insert(
        "Entregas", {"codigo_retirada": "12345", "id": "9", "status": "pendente", "extra": "x"}
    )

    assert row == {"id": "9", "codigo_retirada": "12345", "status": "pendente", "data_entrega": ""}
    kwargs = values_api.append.call_args.kwargs
    assert kwargs["range"] == "Entregas!A:D"
    assert kwargs["body"] == {"values": [["9", "12345", "pendente", ""]]}


def test_conditional_update_writes_matching_row():
    client, values_api = make_client([
        HEADER,
        ["1", "11111", "pendente", "t1"],
        ["2", "12345", "pendente", "t2"],
    ])

    updated = client.update(
        "Entregas", {"id": "2"}, {"status": "retirada"}, expected={"status": "pendente"}
    )

    assert updated == [{"id": "2", "codigo_retirada": "12345", "status": "retirada", "data_entrega": "t2"}]
    kwargs = values_api.update.call_args.kwargs
    assert kwargs["range"] == "Entregas!A3:D3"
    assert kwargs["body"] == {"values": [["2", "12345", "retirada", "t2"]]}


def test_conditional_update_skips_row_failing_guard():
    client, values_api = make_client([
        HEADER,
        ["2", "12345", "retirada", "t2"],
    ])

    updated = client.update(
        "Entregas", {"id": "2"}, {"status": "retirada"}, expected={"status": "pendente"}
    )

    assert updated == []
    values_api.update.assert_not_called()


def test_requires_spreadsheet_id(monkeypatch):
    from portaria.config import settings

    monkeypatch.setattr(settings, "google_sheets_id", None)
    with pytest.raises(ValueError):
        SheetsClient(service=MagicMock())


@pytest.mark.parametrize("error", [
    httplib2.ServerNotFoundError("Unable to find the server at sheets.googleapis.com"),
    TransportError("offline"),
])
def test_offline_errors_are_retried_then_reported(monkeypatch, error):
    monkeypatch.setattr(SheetsClient._read_table.retry, "wait", wait_none())
    client, values_api = make_client([HEADER])
    values_api.get.return_value.execute.side_effect = error

    with pytest.raises(RemoteStoreError):
        client.select("Entregas", {})
    with pytest.raises(RemoteStoreError):
        client.update("Entregas", {"id": "1"}, {"status": "retirada"})

    assert values_api.get.return_value.execute.call_count == 6


def test_credential_errors_are_reported_without_retry(monkeypatch):
    monkeypatch.setattr(SheetsClient._read_table.retry, "wait", wait_none())
    client, values_api = make_client([HEADER])
    values_api.get.return_value.execute.side_effect = DefaultCredentialsError("no ADC")

    with pytest.raises(RemoteStoreError):
        client.insert("Entregas", {"id": "9"})

    assert values_api.get.return_value.execute.call_count == 1
