"""Tests for configuration-driven persistence and run modes."""

from pathlib import Path

import pytest

from memopipe.config import PipelineConfig
from memopipe.configured import ConfiguredPipeline
from memopipe.errors import MissingUpstreamError, UnknownStepError
from memopipe.io.artifact import ArtifactFactory
from memopipe.kernel.producer import PersistedProducer, Producer


def _pipeline(**config):
    data = {"output": {"dir": "mem://cfg", "persist": {"one": True, "two": "fixed/two.txt", "three": False}}}
    data.update(config)
    return ConfiguredPipeline(PipelineConfig.from_dict(data), ArtifactFactory.with_memory_store())


def _register(pipeline):
    one = pipeline.optionally_persist_as.singleton.text(Producer.from_memory(1, name="One"), int, step_name="one")
    two = pipeline.optionally_persist_as.singleton.text(Producer.from_memory(2, name="Two"), int, step_name="two")
    three = pipeline.optionally_persist_as.singleton.text(Producer.from_memory(3, name="Three"), int, step_name="three")
    four = pipeline.optionally_persist_as.singleton.text(Producer.from_memory(4, name="Four"), int, step_name="four")
    return one, two, three, four


def test_persistence_follows_configuration():
    pipeline = _pipeline()
    one, two, three, four = _register(pipeline)

    assert isinstance(one, PersistedProducer)
    assert one.artifact.url.startswith("mem://cfg/data/One.")
    assert one.artifact.url.endswith(".txt")
    assert isinstance(two, PersistedProducer)
    assert two.artifact.url == "mem://cfg/fixed/two.txt"
    assert not isinstance(three, PersistedProducer)
    assert not isinstance(four, PersistedProducer)

    assert set(pipeline.persisted_steps_by_name) == {"one", "two"}
    assert pipeline.targets == (one, two)


def test_full_run():
    pipeline = _pipeline()
    _register(pipeline)
    assert pipeline.run("configured") == [1, 2]
    store = pipeline.artifact_factory.memory_store
    assert store.blobs["mem://cfg/fixed/two.txt"] == b"2"


def test_run_only_by_configured_step_name():
    pipeline = _pipeline(runOnly="two")
    one, two, _, _ = _register(pipeline)
    assert pipeline.run("partial") == [2]
    assert two.artifact.exists()
    assert not one.artifact.exists()


def test_run_only_unknown_names():
    pipeline = _pipeline(runOnly="one,nope")
    _register(pipeline)
    with pytest.raises(UnknownStepError, match="Unknown step name: nope"):
        pipeline.run("partial")

    pipeline = _pipeline(runOnly="three,nope")
    _register(pipeline)
    with pytest.raises(UnknownStepError) as exc_info:
        pipeline.run("partial")
    # A step that is configured but not persisted is not runnable by name
    assert exc_info.value.names == ["three", "nope"]
    assert "Unknown step names: [three,nope]" in str(exc_info.value)


@pytest.mark.parametrize("run_only", ["", " , ", []])
def test_blank_run_only_is_rejected(run_only):
    pipeline = _pipeline(runOnly=run_only)
    one, two, _, _ = _register(pipeline)
    with pytest.raises(UnknownStepError, match="names no steps"):
        pipeline.run("partial")
    assert not one.is_computed
    assert pipeline.artifact_factory.memory_store.urls() == []


def test_run_only_checks_upstream():
    pipeline = _pipeline(runOnly="two")
    one = pipeline.optionally_persist_as.singleton.text(Producer.from_memory(1, name="One"), int, step_name="one")
    pipeline.optionally_persist_as.singleton.text(
        Producer.from_function(lambda x: x + 1, name="Two", x=one), int, step_name="two"
    )
    with pytest.raises(MissingUpstreamError):
        pipeline.run("partial")


def test_dry_run_from_configuration():
    pipeline = _pipeline(dryRun=True)
    one, two, _, _ = _register(pipeline)
    assert pipeline.run("preview") == []
    assert not one.is_computed
    assert not two.artifact.exists()
    urls = pipeline.artifact_factory.memory_store.urls()
    assert urls == [
        "mem://cfg/summary/preview-dryRun.html",
        "mem://cfg/summary/preview-dryRun.signatures.json",
        "mem://cfg/summary/preview-dryRun.workflow.json",
    ]


def test_output_root_defaults_to_working_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    pipeline = ConfiguredPipeline(PipelineConfig())
    assert pipeline.output_root == Path.cwd().as_uri()
