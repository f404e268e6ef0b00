from pathlib import Path

import pytest

from conftest import make_config
from petsync.errors import ConfigError, FormatError, HttpStatusError, SchemaError
from petsync.pipeline import SyncPipeline, records_to_rows
from petsync.scheduler import TriggerScheduler, state
from petsync.sheets import SheetWriter, SyncResult
from petsync.store import TriggerStore

R1 = {"id": 1, "name": "Rex", "owner": "Ann"}
R2 = {"id": 2, "name": "Tom", "owner": "Bo"}
R3 = {"id": 3, "name": "Kit", "owner": "Cy"}


class FakeClient:
    def __init__(self, responses):
        self.responses = dict(responses)
        self.calls = []

    def call(self, url, method="GET", headers=None, payload=None, timeout_ms=None):
        self.calls.append({"url": url, "headers": dict(headers or {})})
        response = self.responses[url]
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        pass


class FakeWriter:
    def __init__(self):
        self.writes = []

    def write(self, rows, full_refresh=True):
        self.writes.append({"rows": rows, "full_refresh": full_refresh})
        return SyncResult(success=True, rows=len(rows))


@pytest.fixture
def scheduler(tmp_path: Path):
    store = TriggerStore(str(tmp_path / "triggers.db"))
    yield TriggerScheduler(store)
    store.dispose()


def _config(**overrides):
    values = {
        "api_url": "https://api.test",
        "endpoints": {"pets": "/pets", "owners": "/owners"},
    }
    values.update(overrides)
    return make_config(**values)


def test_two_endpoints_write_in_order(scheduler):
    client = FakeClient(
        {
            "https://api.test/pets": {"data": [R1, R2]},
            "https://api.test/owners": {"data": [R3]},
        }
    )
    writer = FakeWriter()

    result = SyncPipeline(_config(), client, writer, scheduler).run()

    assert result.success is True
    assert result.rows == 3
    assert writer.writes == [
        {
            "rows": [[1, "Rex", "Ann"], [2, "Tom", "Bo"], [3, "Kit", "Cy"]],
            "full_refresh": True,
        }
    ]
    assert [c["url"] for c in client.calls] == [
        "https://api.test/pets",
        "https://api.test/owners",
    ]


def test_bearer_token_is_sent(scheduler):
    client = FakeClient({"https://api.test/pets": {"data": []}, "https://api.test/owners": {"data": [R1]}})

    SyncPipeline(_config(api_key="tok"), client, FakeWriter(), scheduler).run()

    assert all(c["headers"]["Authorization"] == "Bearer tok" for c in client.calls)


def test_failure_on_second_endpoint_skips_write(scheduler):
    client = FakeClient(
        {
            "https://api.test/pets": {"data": [R1, R2]},
            "https://api.test/owners": HttpStatusError(500, "down", "https://api.test/owners"),
        }
    )
    writer = FakeWriter()

    with pytest.raises(HttpStatusError) as info:
        SyncPipeline(_config(), client, writer, scheduler).run()

    assert info.value.status_code == 500
    assert writer.writes == []
    assert scheduler.triggers("fetchData") == []
    assert state.total_errors == 1
    assert "down" in state.last_error
    assert state.running is False


def test_missing_required_key_fails(scheduler):
    client = FakeClient(
        {
            "https://api.test/pets": {"data": [R1], "meta": {}},
            "https://api.test/owners": {"data": [R2]},
        }
    )

    with pytest.raises(SchemaError, match="meta"):
        SyncPipeline(
            _config(required_keys=["data", "meta"]), client, FakeWriter(), scheduler
        ).run()


def test_non_list_data_is_skipped(scheduler):
    client = FakeClient(
        {
            "https://api.test/pets": {"data": {"id": 9}},
            "https://api.test/owners": {"data": [R3]},
        }
    )
    writer = FakeWriter()

    result = SyncPipeline(_config(), client, writer, scheduler).run()

    assert result.rows == 1
    assert writer.writes[0]["rows"] == [[3, "Kit", "Cy"]]


def test_success_ensures_trigger_and_records_state(scheduler):
    client = FakeClient(
        {"https://api.test/pets": {"data": [R1]}, "https://api.test/owners": {"data": []}}
    )

    result = SyncPipeline(_config(), client, FakeWriter(), scheduler).run()

    triggers = scheduler.triggers("fetchData")
    assert len(triggers) == 1
    assert triggers[0].period_minutes == 60
    assert state.total_runs == 1
    assert state.last_rows == 1
    assert state.last_message == result.message


def test_incremental_mode_is_passed_to_writer(scheduler):
    client = FakeClient(
        {"https://api.test/pets": {"data": [R1]}, "https://api.test/owners": {"data": []}}
    )
    writer = FakeWriter()

    SyncPipeline(_config(full_refresh=False), client, writer, scheduler).run()

    assert writer.writes[0]["full_refresh"] is False


def test_trailing_slash_on_base_url(scheduler):
    client = FakeClient(
        {"https://api.test/pets": {"data": [R1]}, "https://api.test/owners": {"data": []}}
    )

    SyncPipeline(_config(api_url="https://api.test/"), client, FakeWriter(), scheduler).run()

    assert client.calls[0]["url"] == "https://api.test/pets"


def test_no_records_fails_at_writer(scheduler, sheets_service):
    config = _config(endpoints={})
    writer = SheetWriter(config, service=sheets_service)

    with pytest.raises(FormatError):
        SyncPipeline(config, FakeClient({}), writer, scheduler).run()

    assert sheets_service.updates == []


def test_unusable_api_url_is_config_error(scheduler):
    config = _config().model_copy(update={"api_url": ""})

    with pytest.raises(ConfigError):
        SyncPipeline(config, FakeClient({}), FakeWriter(), scheduler).run()


def test_records_to_rows_layout():
    records = [
        {"id": 1, "name": "Rex"},
        {"id": 2, "tags": ["a", "b"], "owner": None},
        ["x", "y"],
        "solo",
    ]

    assert records_to_rows(records) == [
        [1, "Rex", "", ""],
        [2, "", '["a", "b"]', ""],
        ["x", "y", "", ""],
        ["solo", "", "", ""],
    ]


def test_mixed_records_are_accepted_by_writer(scheduler, sheets_service):
    config = _config()
    client = FakeClient(
        {
            "https://api.test/pets": {"data": [{"id": 1, "name": "Rex"}, ["x"]]},
            "https://api.test/owners": {"data": ["solo"]},
        }
    )

    result = SyncPipeline(config, client, SheetWriter(config, service=sheets_service), scheduler).run()

    assert result.rows == 3
    assert sheets_service.updates[0]["values"] == [[1, "Rex"], ["x", ""], ["solo", ""]]


def test_trigger_uses_configured_period(scheduler):
    client = FakeClient(
        {"https://api.test/pets": {"data": [R1]}, "https://api.test/owners": {"data": []}}
    )

    SyncPipeline(_config(trigger_period_minutes=15), client, FakeWriter(), scheduler).run()

    assert [t.period_minutes for t in scheduler.triggers("fetchData")] == [15]


def test_records_to_rows_fixed_columns():
    assert records_to_rows([{"a": 1, "b": 2}], columns=["b", "missing"]) == [[2, ""]]
