import json
import sys

import pytest

from step_launcher import api, cli
from step_launcher.contracts import LauncherError
from step_launcher.metadata import FakeMetadataStore

_SCHEMA = "title: kfp.Model\ntype: object\n"


@pytest.fixture
def metadata_store(monkeypatch):
    store = FakeMetadataStore()
    targets = []

    def _connect(target):
        targets.append(target)
        return store

    monkeypatch.setattr(api, "GrpcMetadataStore", _connect)
    store.targets = targets
    return store


def _flags(tmp_path, **extra):
    flags = {
        "pipeline_name": "p",
        "pipeline_run_id": "r",
        "pipeline_task_id": "t",
        "pipeline_root": f"file://{tmp_path}/store",
        "task_name": "train",
        "mlmd_server_address": "metadata",
        "mlmd_server_port": "9090",
        "input_root": str(tmp_path / "inputs"),
        "output_root": str(tmp_path / "outputs"),
        **extra,
    }
    argv = []
    for name, value in flags.items():
        argv.extend([f"--{name}", value])
    return argv


def test_split_command():
    assert cli.split_command(["--a", "1", "--", "python", "--a"]) == (["--a", "1"], ["python", "--a"])
    assert cli.split_command(["--a", "1"]) == (["--a", "1"], [])


def test_cli_runs_step_and_uploads_to_file_root(tmp_path, metadata_store):
    runtime_info = json.dumps(
        {
            "outputArtifacts": {
                "model": {"artifactSchema": _SCHEMA, "fileOutputPath": str(tmp_path / "sink.json")}
            }
        }
    )
    code = "import pathlib, sys; pathlib.Path(sys.argv[1]).write_bytes(b'weights')"

    status = cli.main(
        [
            *_flags(tmp_path, runtime_info_json=runtime_info),
            "--",
            sys.executable,
            "-c",
            code,
            "{{$.outputs.artifacts['model'].path}}",
        ]
    )

    assert status == 0
    assert (tmp_path / "store" / "p" / "r" / "t" / "data").read_bytes() == b"weights"
    record = json.loads((tmp_path / "sink.json").read_text(encoding="utf-8"))
    assert record["uri"] == f"file://{tmp_path}/store/p/r/t/data"
    assert metadata_store.targets == ["metadata:9090"]
    assert metadata_store.closed
    assert len(metadata_store.executions) == 1


def test_cli_reads_options_from_yaml(tmp_path, metadata_store, monkeypatch):
    monkeypatch.setenv("TASK", "from-env")
    config = tmp_path / "launcher.yaml"
    config.write_text(
        "\n".join(
            [
                "pipeline_name: p",
                "pipeline_run_id: r",
                "pipeline_task_id: t",
                f"pipeline_root: file://{tmp_path}/store",
                "task_name: ${TASK}",
                "mlmd_server_address: metadata",
                f"output_root: {tmp_path / 'outputs'}",
                "",
            ]
        ),
        encoding="utf-8",
    )

    status = cli.main(["--config", str(config), "--", sys.executable, "-c", "pass"])

    assert status == 0
    [execution] = metadata_store.executions.values()
    assert execution.custom_properties["task_name"].unwrap() == "from-env"
    assert metadata_store.targets == ["metadata:8080"]


def test_cli_returns_child_exit_code(tmp_path, metadata_store):
    status = cli.main([*_flags(tmp_path), "--", sys.executable, "-c", "import sys; sys.exit(7)"])

    assert status == 7
    assert metadata_store.calls[-1].name == "close"
    assert metadata_store.executions == {}


def test_cli_returns_one_for_invalid_configuration(tmp_path, metadata_store):
    argv = _flags(tmp_path)
    index = argv.index("--task_name")
    del argv[index : index + 2]

    status = cli.main([*argv, "--", sys.executable, "-c", "pass"])

    assert status == 1
    assert metadata_store.targets == []


def test_cli_returns_one_for_malformed_runtime_info(tmp_path, metadata_store):
    status = cli.main(
        [*_flags(tmp_path, runtime_info_json="{oops"), "--", sys.executable, "-c", "pass"]
    )

    assert status == 1


def test_cli_requires_a_command(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(_flags(tmp_path))

    assert excinfo.value.code == 2


@pytest.mark.parametrize(
    ("exit_code", "status"),
    [(None, 1), (0, 1), (3, 3), (-9, 137)],
)
def test_exit_status_for_launcher_errors(exit_code, status):
    error = LauncherError("boom", phase="exec", exit_code=exit_code)

    assert cli._exit_status(error) == status


def test_launch_from_yaml_with_explicit_store(tmp_path):
    config = tmp_path / "launcher.yaml"
    config.write_text(
        "\n".join(
            [
                "pipeline_name: p",
                "pipeline_run_id: r",
                "pipeline_task_id: t",
                f"pipeline_root: file://{tmp_path}/store",
                "task_name: train",
                "mlmd_server_address: metadata",
                "",
            ]
        ),
        encoding="utf-8",
    )
    store = FakeMetadataStore()

    result = api.launch_from_yaml(
        config,
        [sys.executable, "-c", "pass"],
        overrides={"task_name": "override"},
        metadata_store=store,
    )

    assert result.phase == "done"
    assert store.executions[result.execution_id].custom_properties["task_name"].unwrap() == "override"
    assert store.closed


def test_launch_requires_a_command(tmp_path):
    config = api.load_launch_config(
        overrides={
            "pipeline_name": "p",
            "pipeline_run_id": "r",
            "pipeline_task_id": "t",
            "pipeline_root": "gs://bucket",
            "task_name": "train",
            "mlmd_server_address": "metadata",
        }
    )

    with pytest.raises(api.ConfigError, match="command to launch is required"):
        api.launch(config, [], metadata_store=FakeMetadataStore())
