import pytest

from step_launcher.contracts import (
    Artifact,
    ConfigError,
    MetadataInvariantError,
    SchemaTitleError,
)
from step_launcher.metadata import FakeMetadataStore, MetadataClient, schema_to_artifact_type

_SCHEMA = "properties:\ntitle: kfp.Dataset\ntype: object\n"


def test_ensure_context_creates_type_and_context_once():
    store = FakeMetadataStore()
    client = MetadataClient(store)

    first = client.ensure_context("my-pipeline", "kfp.Pipeline")
    second = client.ensure_context("my-pipeline", "kfp.Pipeline")

    assert first == second
    assert first.id is not None
    assert first.name == "my-pipeline"
    assert store.call_names().count("put_contexts") == 1
    assert store.call_names().count("put_context_type") == 1


def test_ensure_context_reuses_existing_type():
    store = FakeMetadataStore()
    client = MetadataClient(store)

    client.ensure_context("run-1", "kfp.PipelineRun")
    client.ensure_context("run-2", "kfp.PipelineRun")

    assert store.call_names().count("put_context_type") == 1
    assert store.call_names().count("put_contexts") == 2


def test_ensure_context_creates_context_when_type_is_unregistered():
    store = FakeMetadataStore()
    client = MetadataClient(store)

    context = client.ensure_context("demo", "kfp.Pipeline")

    assert context.name == "demo"
    assert store.contexts[context.id].type_id == store.context_types["kfp.Pipeline"].id
    assert store.call_names() == [
        "get_context_by_type_and_name",
        "get_context_type",
        "put_context_type",
        "put_contexts",
        "get_context_by_type_and_name",
    ]


def test_ensure_context_propagates_context_lookup_errors():
    class _UnavailableStore(FakeMetadataStore):
        def get_context_by_type_and_name(self, type_name, context_name):
            raise ConnectionError("metadata store unavailable")

    store = _UnavailableStore()

    with pytest.raises(ConnectionError, match="unavailable"):
        MetadataClient(store).ensure_context("demo", "kfp.Pipeline")
    assert not any(call.mutating for call in store.calls)


def test_ensure_context_treats_empty_lookup_as_not_found():
    store = FakeMetadataStore(empty_context_lookups=1)
    client = MetadataClient(store)

    context = client.ensure_context("my-pipeline", "kfp.Pipeline")

    assert context.id is not None
    assert store.call_names() == [
        "get_context_by_type_and_name",
        "get_context_type",
        "put_context_type",
        "put_contexts",
        "get_context_by_type_and_name",
    ]


def test_ensure_context_fails_when_created_context_cannot_be_read_back():
    store = FakeMetadataStore(empty_context_lookups=2)
    client = MetadataClient(store)

    with pytest.raises(MetadataInvariantError, match="cannot be read back"):
        client.ensure_context("my-pipeline", "kfp.Pipeline")


def test_ensure_context_propagates_type_lookup_errors():
    class _Unavailable(FakeMetadataStore):
        def get_context_type(self, type_name):
            raise ConnectionError("store unavailable")

    client = MetadataClient(_Unavailable())

    with pytest.raises(ConnectionError, match="store unavailable"):
        client.ensure_context("my-pipeline", "kfp.Pipeline")


def test_get_pipeline_caches_contexts():
    store = FakeMetadataStore()
    client = MetadataClient(store)

    first = client.get_pipeline("my-pipeline", "run-1")
    calls_after_first = len(store.calls)
    second = client.get_pipeline("my-pipeline", "run-1")

    assert first is second
    assert len(store.calls) == calls_after_first
    assert first.pipeline.name == "my-pipeline"
    assert first.pipeline_run.name == "run-1"
    assert first.pipeline.type_id != first.pipeline_run.type_id
    assert set(store.context_types) == {"kfp.Pipeline", "kfp.PipelineRun"}


@pytest.mark.parametrize(
    ("schema", "title"),
    [
        (_SCHEMA, "kfp.Dataset"),
        ("title: kfp.Model\n", "kfp.Model"),
        ('{"title": "kfp.Metrics", "type": "object"}', "kfp.Metrics"),
    ],
)
def test_schema_title_names_the_artifact_type(schema, title):
    assert schema_to_artifact_type(schema).name == title


@pytest.mark.parametrize("schema", ["type: object\n", "", "- a\n- b\n", "title: ''\n"])
def test_untitled_schema_is_rejected(schema):
    with pytest.raises(SchemaTitleError):
        schema_to_artifact_type(schema)


def test_invalid_schema_yaml_is_config_error():
    with pytest.raises(ConfigError, match="Failed to parse artifact schema"):
        schema_to_artifact_type("title: [unterminated\n")


def test_record_artifact_with_untitled_schema_makes_no_mutating_call():
    store = FakeMetadataStore()
    client = MetadataClient(store)

    with pytest.raises(SchemaTitleError):
        client.record_artifact("type: object\n", Artifact(uri="gs://bucket/p/r/t/data"))

    assert not any(call.mutating for call in store.calls)
    assert store.artifacts == {}


def test_record_artifact_returns_stored_copy():
    store = FakeMetadataStore()
    client = MetadataClient(store)

    recorded = client.record_artifact(_SCHEMA, Artifact(uri="gs://bucket/p/r/t/data"))

    assert recorded.id is not None
    assert recorded.uri == "gs://bucket/p/r/t/data"
    assert recorded.type_id == store.artifact_types["kfp.Dataset"].id
    assert recorded.create_time_since_epoch is not None
    assert store.call_names() == ["put_artifact_type", "put_artifacts", "get_artifacts_by_id"]


def test_record_artifact_registers_type_idempotently():
    store = FakeMetadataStore()
    client = MetadataClient(store)

    first = client.record_artifact(_SCHEMA, Artifact(uri="gs://bucket/a"))
    second = client.record_artifact(_SCHEMA, Artifact(uri="gs://bucket/b"))

    assert first.type_id == second.type_id
    assert first.id != second.id
    assert list(store.artifact_types) == ["kfp.Dataset"]


def test_record_artifact_requires_exactly_one_id():
    class _TooManyIds(FakeMetadataStore):
        def put_artifacts(self, artifacts):
            return super().put_artifacts(artifacts) + [999]

    client = MetadataClient(_TooManyIds())

    with pytest.raises(MetadataInvariantError, match="Expected one artifact id, got 2"):
        client.record_artifact(_SCHEMA, Artifact(uri="gs://bucket/a"))


def test_record_artifact_requires_exactly_one_stored_copy():
    class _Forgetful(FakeMetadataStore):
        def get_artifacts_by_id(self, artifact_ids):
            return []

    client = MetadataClient(_Forgetful())

    with pytest.raises(MetadataInvariantError, match="got 0"):
        client.record_artifact(_SCHEMA, Artifact(uri="gs://bucket/a"))


def test_record_execution_links_events_and_contexts():
    store = FakeMetadataStore()
    client = MetadataClient(store)
    pipeline = client.get_pipeline("my-pipeline", "run-1")
    upstream = client.record_artifact(_SCHEMA, Artifact(uri="gs://bucket/upstream"))
    produced = client.record_artifact(_SCHEMA, Artifact(uri="gs://bucket/p/r/t/data"))

    execution = client.record_execution(
        pipeline,
        task_name="train",
        pipeline_name="my-pipeline",
        pipeline_run_id="run-1",
        pipeline_task_id="task-1",
        container_image="python:3.11",
        input_parameters={"num_steps": 1234, "rate": 0.5, "mode": "fast"},
        output_parameters={"accuracy": 0.9},
        input_artifacts=[upstream],
        output_artifacts=[produced],
    )

    assert execution.last_known_state == "COMPLETE"
    assert execution.type_id == store.execution_types["kfp.ContainerExecution"].id
    props = {key: value.unwrap() for key, value in execution.custom_properties.items()}
    assert props == {
        "task_name": "train",
        "pipeline_name": "my-pipeline",
        "pipeline_run_id": "run-1",
        "kfp_pod_name": "task-1",
        "container_image": "python:3.11",
        "input:num_steps": 1234,
        "input:rate": 0.5,
        "input:mode": "fast",
        "output:accuracy": 0.9,
    }
    assert [(event.type, event.artifact_id) for event in store.events] == [
        ("INPUT", upstream.id),
        ("OUTPUT", produced.id),
    ]
    assert set(store.associations) == {
        (pipeline.pipeline.id, execution.id),
        (pipeline.pipeline_run.id, execution.id),
    }


def test_record_execution_reuses_execution_type():
    store = FakeMetadataStore()
    client = MetadataClient(store)
    pipeline = client.get_pipeline("my-pipeline", "run-1")
    kwargs = dict(
        task_name="t", pipeline_name="my-pipeline", pipeline_run_id="run-1", pipeline_task_id="t"
    )

    first = client.record_execution(pipeline, **kwargs)
    second = client.record_execution(pipeline, **kwargs)

    assert first.type_id == second.type_id
    assert first.id != second.id
    assert store.call_names().count("put_execution_type") == 1


def test_record_execution_requires_exactly_one_execution():
    class _Forgetful(FakeMetadataStore):
        def get_executions_by_id(self, execution_ids):
            return []

    client = MetadataClient(_Forgetful())
    pipeline = client.get_pipeline("my-pipeline", "run-1")

    with pytest.raises(MetadataInvariantError, match="Expected one execution"):
        client.record_execution(
            pipeline,
            task_name="t",
            pipeline_name="my-pipeline",
            pipeline_run_id="run-1",
            pipeline_task_id="t",
        )


def test_close_releases_the_store():
    store = FakeMetadataStore()

    MetadataClient(store).close()

    assert store.closed
