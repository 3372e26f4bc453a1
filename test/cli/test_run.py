from __future__ import annotations

import json

import pytest
import yaml
from click.testing import CliRunner

from flowtest.cli import flowtest
from flowtest.config import RunnerConfig
from flowtest.core.version import FLOWTEST_VERSION


@pytest.fixture
def cli():
    return CliRunner()


@pytest.fixture
def workflow_file(tmp_path, api_document):
    (tmp_path / "users.yaml").write_text(yaml.safe_dump(api_document))
    document = {
        "arazzo": "1.0.0",
        "info": {"title": "Users", "version": "1.0.0"},
        "sourceDescriptions": [{"name": "users", "url": "users.yaml"}],
        "workflows": [
            {
                "workflowId": "get-user",
                "steps": [
                    {
                        "stepId": "fetch",
                        "operationId": "getUser",
                        "parameters": [{"name": "userId", "in": "path", "value": "$inputs.userId"}],
                        "successCriteria": [{"condition": "$statusCode == 200"}],
                        "outputs": {"name": "$response.body.name"},
                    }
                ],
                "outputs": {"name": "$steps.fetch.outputs.name"},
            },
            {
                "workflowId": "list-users",
                "steps": [{"stepId": "list", "operationId": "listUsers"}],
            },
        ],
    }
    path = tmp_path / "users.arazzo.yaml"
    path.write_text(yaml.safe_dump(document))
    return path


@pytest.fixture
def mock_client(mocker, client):
    return mocker.patch.object(RunnerConfig, "create_client", return_value=client)


def test_version(cli):
    result = cli.invoke(flowtest, ["--version"])
    assert result.exit_code == 0
    assert FLOWTEST_VERSION in result.output


@pytest.mark.usefixtures("mock_client")
def test_run_success(cli, workflow_file, fake_api, tmp_path):
    fake_api.add("GET", "/users/42", 200, json={"name": "Jane"})
    fake_api.add("GET", "/users", 200, json=[])
    output = tmp_path / "results.json"
    result = cli.invoke(flowtest, ["run", str(workflow_file), "-i", "userId=42", "-o", str(output), "-v"])
    assert result.exit_code == 0, result.output
    assert "[SUCCESS] get-user" in result.output
    assert "[SUCCESS] list-users" in result.output
    data = json.loads(output.read_text())
    assert data["total_workflows"] == 2
    assert data["results"][0]["outputs"] == {"name": "Jane"}
    assert fake_api.calls("GET", "/users/42")


@pytest.mark.usefixtures("mock_client")
def test_run_failure(cli, workflow_file, fake_api):
    fake_api.add("GET", "/users/1", 404)
    result = cli.invoke(flowtest, ["run", str(workflow_file), "-i", "userId=1"])
    assert result.exit_code == 1
    assert "[FAILURE] get-user" in result.output
    assert "Step fetch failed" in result.output
    # The document stops at the first unsuccessful workflow
    assert "list-users" not in result.output


@pytest.mark.usefixtures("mock_client")
def test_select_workflow(cli, workflow_file, fake_api):
    fake_api.add("GET", "/users", 200, json=[])
    result = cli.invoke(flowtest, ["run", str(workflow_file), "-w", "list-users"])
    assert result.exit_code == 0, result.output
    assert "get-user" not in result.output


@pytest.mark.usefixtures("mock_client")
def test_no_matching_workflows(cli, workflow_file):
    result = cli.invoke(flowtest, ["run", str(workflow_file), "-w", "unknown"])
    assert result.exit_code == 0
    assert "No workflows found" in result.output


@pytest.mark.usefixtures("mock_client")
def test_inputs_file(cli, workflow_file, fake_api, tmp_path):
    fake_api.add("GET", "/users/7", 200, json={"name": "Joe"})
    inputs = tmp_path / "inputs.json"
    inputs.write_text(json.dumps({"get-user": {"userId": 7}}))
    result = cli.invoke(flowtest, ["run", str(workflow_file), "--inputs-file", str(inputs), "-w", "get-user"])
    assert result.exit_code == 0, result.output


@pytest.mark.usefixtures("mock_client")
def test_invalid_input(cli, workflow_file):
    result = cli.invoke(flowtest, ["run", str(workflow_file), "-i", "userId"])
    assert result.exit_code == 1
    assert "Failed to load workflows" in result.output


@pytest.mark.usefixtures("mock_client")
def test_invalid_document(cli, tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("arazzo: 1.0.0\n")
    result = cli.invoke(flowtest, ["run", str(path)])
    assert result.exit_code == 1
    assert "Failed to load workflows" in result.output


def test_invalid_config(cli, workflow_file, tmp_path):
    config = tmp_path / "flowtest.toml"
    config.write_text("[runner]\ntimeout = -1\n")
    result = cli.invoke(flowtest, ["run", str(workflow_file), "--config", str(config)])
    assert result.exit_code == 1
    assert "Invalid timeout" in result.output


def test_config_is_used(cli, workflow_file, fake_api, tmp_path, mocker, client):
    fake_api.add("GET", "/users", 200, json=[])
    config = tmp_path / "flowtest.toml"
    config.write_text('[runner]\ntimeout = 5\n\n[runner.headers]\nX-Api-Key = "key"\n')
    mocker.patch.object(RunnerConfig, "create_client", autospec=True, return_value=client)
    result = cli.invoke(flowtest, ["run", str(workflow_file), "--config", str(config), "-w", "list-users"])
    assert result.exit_code == 0, result.output
    used = RunnerConfig.create_client.call_args.args[0]
    assert used.timeout == 5.0
    assert used.headers == {"X-Api-Key": "key"}
