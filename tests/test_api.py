import pytest
from fastapi.testclient import TestClient

import main
from service import TimetableService


@pytest.fixture
def client(config, store):
    main.app.dependency_overrides[main.get_service] = lambda: TimetableService(config, store)
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


def test_health(client):
    r = client.get("/api")
    assert r.status_code == 200
    assert r.json()["status"] == "online"


def test_timetable_data(client):
    body = client.get("/api/timetable").json()
    assert body["success"] is True
    assert len(body["data"]) == 9


def test_unique_modules_and_periods(client):
    modules = client.get("/api/modules").json()
    assert modules["success"] is True
    assert modules["modules"][0] == {"period": "TP1", "module": "CS101"}

    periods = client.get("/api/periods").json()
    assert periods == {"success": True, "periods": ["TP1", "TP2"]}


def test_module_data(client):
    body = client.get("/api/module-data", params={"module": "CS101", "period": "TP1"}).json()
    assert body["success"] is True
    assert body["groups"] == ["No Group", "G3", "G10"]
    assert [r[1] for r in body["groupedData"]["G3"]] == ["1", "2"]
    assert len(body["data"]) == 4


def test_directories_and_calendar(client):
    assert client.get("/api/staff").json() == {"success": True, "staff": ["Alice", "Bob"]}
    assert client.get("/api/rooms").json() == {"success": True, "rooms": ["Room A", "Lab 1"]}
    calendar = client.get("/api/academic-calendar").json()
    assert calendar["calendar"][0] == {"period": "TP1", "startDate": "2024-09-02"}


def test_calculate_date(client):
    body = client.get("/api/calculate-date", params={"period": "TP1", "week": "1", "day": "Monday"}).json()
    assert body["success"] is True
    assert body["date"] == "2024-09-02"
    assert body["dateParts"] == {"year": 2024, "month": 9, "day": 2, "dayOfWeek": "Monday"}


@pytest.mark.parametrize("params, message", [
    ({"period": "TP9", "week": "1", "day": "Monday"}, "TP9"),
    ({"period": "TP1", "week": "0", "day": "Monday"}, "week"),
    ({"period": "TP1", "week": "1", "day": "Mon"}, "day"),
])
def test_calculate_date_errors(client, params, message):
    body = client.get("/api/calculate-date", params=params).json()
    assert body["success"] is False
    assert message in body["error"]


def test_save_edited_data(client, timetable_sheet):
    body = client.post("/api/save", json={"uid": "U1", "columnIndex": 11, "value": "Dr Smith"}).json()
    assert body == {"success": True, "message": "Data saved successfully for UID: U1"}
    assert timetable_sheet.cell(2, 12) == "Dr Smith"


def test_save_unknown_uid(client, timetable_sheet):
    body = client.post("/api/save", json={"uid": "missing", "columnIndex": 11, "value": "x"}).json()
    assert body["success"] is False
    assert "missing" in body["error"]
    assert timetable_sheet.writes == []


def test_save_with_date(client, timetable_sheet):
    body = client.post("/api/save-with-date", json={
        "uid": "U2", "columnIndex": 13, "value": "Tuesday", "period": "TP1", "week": 1,
    }).json()
    assert body["success"] is True
    assert timetable_sheet.cell(3, 16) == "2024-09-03"


def test_batch_update(client):
    body = client.post("/api/batch-update", json=[
        {"uid": "U1", "staff": "Alice"},
        {"uid": "U2", "room": "Lab 1"},
        {"uid": "ghost", "staff": "Bob"},
    ]).json()
    assert body["success"] is True
    assert (body["updated"], body["total"]) == (2, 3)


def test_debug_config(client):
    body = client.get("/api/debug-config").json()
    assert body["configLoaded"] is True
    assert body["sheetAccess"] is True
    assert body["rowCount"] == 10


def test_missing_config_is_reported(monkeypatch):
    monkeypatch.delenv("SPREADSHEET_ID", raising=False)
    main.get_config.cache_clear()
    main.get_service.cache_clear()
    body = TestClient(main.app).get("/api/periods").json()
    assert body["success"] is False
    assert "SPREADSHEET_ID" in body["error"]


def test_missing_sheet_is_reported(config):
    from conftest import FakeStore

    main.app.dependency_overrides[main.get_service] = lambda: TimetableService(config, FakeStore({}))
    try:
        body = TestClient(main.app).get("/api/modules").json()
    finally:
        main.app.dependency_overrides.clear()
    assert body == {"success": False, "error": "Sheet not found: Timetable"}


def test_auth_url_without_client_secrets(tmp_path):
    from settings import TimetableConfig

    config = TimetableConfig(
        spreadsheet_id="s",
        token_file=str(tmp_path / "token.json"),
        client_secrets_file=str(tmp_path / "credentials.json"),
    )
    main.app.dependency_overrides[main.get_config] = lambda: config
    try:
        body = TestClient(main.app).get("/auth/url").json()
        assert body["authenticated"] is False
        assert body["url"] is None
        assert "credentials.json" in body["error"]

        (tmp_path / "token.json").write_text("{}")
        assert TestClient(main.app).get("/auth/url").json() == {"authenticated": True}
    finally:
        main.app.dependency_overrides.clear()


def test_calculate_date_non_ascii_week(client):
    body = client.get("/api/calculate-date", params={"period": "TP1", "week": "²", "day": "Monday"}).json()
    assert body["success"] is False
    assert "week" in body["error"]


@pytest.mark.parametrize("method, path, kwargs, field", [
    ("post", "/api/save", {"json": {"columnIndex": 11, "value": "x"}}, "uid"),
    ("get", "/api/module-data", {}, "module"),
    ("post", "/api/batch-update", {"json": [{"uid": "U1", "period": 5}]}, "period"),
])
def test_invalid_requests_get_envelope(client, timetable_sheet, method, path, kwargs, field):
    r = getattr(client, method)(path, **kwargs)
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is False
    assert field in body["error"]
    assert timetable_sheet.writes == []


def test_debug_config_reports_any_store_error(config):
    from errors import ConfigMissing

    class NoCredentialsStore:
        def find_sheet(self, name):
            raise ConfigMissing("No Google credentials")

    body = TimetableService(config, NoCredentialsStore()).debug_config()
    assert body["configLoaded"] is True
    assert body["spreadsheetAccess"] is False
    assert "No Google credentials" in body["error"]
