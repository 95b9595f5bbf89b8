"""Tests for the QuickCode endpoint wrappers."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from quickcode.client.api import ProjectCredentials, QuickCodeApi, as_bool
from quickcode.client.sync_client import SyncClient
from quickcode.models import RequestConfig


CREDS = ProjectCredentials(project="demo", email="dev@example.com", secret_code="s3cret")


class _Recorder:
    """MockTransport handler that records requests and replies with a canned body."""

    def __init__(self, body: Any = True, text: str | None = None) -> None:
        self.body = body
        self.text = text
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.text is not None:
            return httpx.Response(200, text=self.text)
        return httpx.Response(200, json=self.body)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    @property
    def last_json(self) -> Any:
        return json.loads(self.last.content)


@pytest.fixture
def recorder() -> _Recorder:
    return _Recorder()


@pytest.fixture
def api(recorder: _Recorder, quiet_output):
    client = SyncClient(
        "https://api.example.com/",
        RequestConfig(max_retries=0),
        transport=httpx.MockTransport(recorder),
    )
    with client:
        yield QuickCodeApi(client)


class TestAsBool:
    @pytest.mark.parametrize(
        "value, expected",
        [(True, True), (False, False), ("true", True), (" True ", True), ("no", False), (None, False), (1, False)],
    )
    def test_values(self, value: Any, expected: bool) -> None:
        assert as_bool(value) is expected


class TestProjects:
    def test_create_project(self, api: QuickCodeApi, recorder: _Recorder) -> None:
        assert api.create_project("demo", "dev@example.com") is True
        assert recorder.last.method == "POST"
        assert recorder.last.url.path == "/api/GenerateSite/CreateProject"
        assert recorder.last_json == {"projectName": "demo", "projectEmail": "dev@example.com"}

    def test_check_project_name(self, api: QuickCodeApi, recorder: _Recorder) -> None:
        recorder.body = False
        assert api.check_project_name("demo") is False
        assert recorder.last.url.path == "/api/Dbml/check-project-name/demo"

    def test_check_secret_code_encodes_segments(
        self, api: QuickCodeApi, recorder: _Recorder
    ) -> None:
        creds = ProjectCredentials(project="my demo", email="dev@example.com", secret_code="a/b")
        api.check_secret_code(creds)
        assert recorder.last.url.raw_path.decode() == (
            "/api/Dbml/check-secret-code/my%20demo/dev@example.com/a%2Fb"
        )

    def test_forgot_secret(self, api: QuickCodeApi, recorder: _Recorder) -> None:
        assert api.forgot_secret_code("demo", "dev@example.com") is True
        assert recorder.last.url.path == "/api/GenerateSite/ForgotProjectSecret"


class TestModules:
    def test_get_available_modules(self, api: QuickCodeApi, recorder: _Recorder) -> None:
        recorder.body = [{"key": "Empty", "name": "Empty"}]
        assert api.get_available_modules() == [{"key": "Empty", "name": "Empty"}]
        assert recorder.last.url.path == "/api/Dbml/get-modules"

    def test_get_project_modules(self, api: QuickCodeApi, recorder: _Recorder) -> None:
        recorder.body = []
        assert api.get_project_modules("demo") == []
        assert recorder.last.url.path == "/api/Dbml/get-project-modules/demo"

    def test_get_module_dbml_is_text(self, api: QuickCodeApi, recorder: _Recorder) -> None:
        recorder.text = "Table orders {}"
        assert api.get_module_dbml("demo", "Orders", "Empty") == "Table orders {}"
        assert recorder.last.url.path == "/api/Dbml/get-module-dbml/demo/Orders/Empty"

    def test_add_project_module(self, api: QuickCodeApi, recorder: _Recorder) -> None:
        api.add_project_module(CREDS, "Orders", "Empty", "mssql", "Service")
        assert recorder.last.url.path == "/api/Dbml/add-project-module"
        assert recorder.last_json == {
            "projectName": "demo",
            "projectEmail": "dev@example.com",
            "projectSecretCode": "s3cret",
            "moduleName": "Orders",
            "moduleTemplateKey": "Empty",
            "dbTypeKey": "mssql",
            "architecturalPatternKey": "Service",
        }

    def test_remove_project_module(self, api: QuickCodeApi, recorder: _Recorder) -> None:
        api.remove_project_module(CREDS, "Orders")
        assert recorder.last.url.path == "/api/Dbml/remove-project-module"
        assert recorder.last_json["moduleName"] == "Orders"

    def test_save_module_dbml(self, api: QuickCodeApi, recorder: _Recorder) -> None:
        api.save_module_dbml(CREDS, "Orders", "Empty", "Table t {}", "postgresql")
        body = recorder.last_json
        assert recorder.last.url.path == "/api/Dbml/save-module-dbml"
        assert body["dbml"] == "Table t {}"
        assert body["dbTypeKey"] == "postgresql"
        assert body["projectSecretCode"] == "s3cret"


class TestGeneration:
    def test_generate_project_solution(self, api: QuickCodeApi, recorder: _Recorder) -> None:
        assert api.generate_project_solution(CREDS, "abc123") is True
        assert recorder.last.url.path == "/api/GenerateSite/GenerateProjectSolution"
        assert recorder.last_json["sessionId"] == "abc123"

    def test_get_active_project(self, api: QuickCodeApi, recorder: _Recorder) -> None:
        recorder.body = {"activeRunId": 7}
        assert api.get_active_project("abc123") == {"activeRunId": 7}
        assert recorder.last.url.path == "/api/GenerateSite/GetActiveProjectBySessionId"
        assert recorder.last.url.params["sessionId"] == "abc123"

    def test_get_generation_steps(self, api: QuickCodeApi, recorder: _Recorder) -> None:
        recorder.body = {"allSteps": [], "allActions": []}
        assert api.get_generation_steps() == {"allSteps": [], "allActions": []}
        assert recorder.last.url.path == "/api/GenerateSite/GetGenerationSteps"
