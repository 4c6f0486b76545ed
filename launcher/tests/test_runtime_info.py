import json

import pytest

from step_launcher.contracts import ConfigError, RuntimeInfo, decode_runtime_info
from step_launcher.contracts.runtime_info import OutputArtifact, OutputParameter


@pytest.mark.parametrize("payload", ["", "   ", "{}"])
def test_empty_payload_decodes_to_empty_maps(payload):
    info = decode_runtime_info(payload)

    assert info == RuntimeInfo()
    assert info.input_parameters == {}
    assert info.input_artifacts == {}
    assert info.output_parameters == {}
    assert info.output_artifacts == {}


def test_output_parameters_only():
    payload = json.dumps(
        {
            "outputParameters": {
                "x": {"parameterType": "STRING", "fileOutputPath": "/tmp/outputs/x/data"},
                "y": {"parameterType": "INT", "fileOutputPath": "/tmp/outputs/y/data"},
            }
        }
    )

    info = decode_runtime_info(payload)

    assert info.input_parameters == {}
    assert info.input_artifacts == {}
    assert info.output_artifacts == {}
    assert info.output_parameters == {
        "x": OutputParameter(parameter_type="STRING", file_output_path="/tmp/outputs/x/data"),
        "y": OutputParameter(parameter_type="INT", file_output_path="/tmp/outputs/y/data"),
    }


def test_output_artifacts_keep_schema_verbatim():
    schema = "properties:\ntitle: kfp.Dataset\ntype: object\n"
    payload = json.dumps(
        {
            "outputArtifacts": {
                "dataset": {"artifactSchema": schema, "fileOutputPath": "/tmp/outputs/dataset/data"}
            }
        }
    )

    info = decode_runtime_info(payload)

    assert info.output_artifacts == {
        "dataset": OutputArtifact(artifact_schema=schema, file_output_path="/tmp/outputs/dataset/data")
    }
    assert info.output_artifacts["dataset"].local_artifact_file_path is None
    assert info.output_artifacts["dataset"].uri_output_path is None


def test_input_parameters_accept_typed_and_bare_values():
    payload = json.dumps(
        {
            "inputParameters": {
                "num_steps": "1234",
                "rate": {"parameterType": "DOUBLE", "parameterValue": "0.5"},
            },
            "inputArtifacts": {"dataset_one": {"fileInputPath": "/tmp/inputs/dataset_one"}},
        }
    )

    info = decode_runtime_info(payload)

    assert info.input_parameters["num_steps"].parameter_type == "STRING"
    assert info.input_parameters["num_steps"].parameter_value == "1234"
    assert info.input_parameters["rate"].parameter_type == "DOUBLE"
    assert info.input_artifacts["dataset_one"].file_input_path == "/tmp/inputs/dataset_one"


def test_null_sections_and_unknown_fields_are_tolerated():
    payload = json.dumps({"inputParameters": None, "somethingElse": 1})

    assert decode_runtime_info(payload) == RuntimeInfo()


def test_malformed_json_is_config_error():
    with pytest.raises(ConfigError, match="runtime_info"):
        decode_runtime_info("{not json")


def test_wrongly_typed_field_is_config_error():
    payload = json.dumps({"outputParameters": {"x": {"parameterType": "BLOB", "fileOutputPath": "/x"}}})

    with pytest.raises(ConfigError, match=r"runtime_info\.outputParameters\.x\.parameterType"):
        decode_runtime_info(payload)
