"""Tests for run report artifacts."""

import json
from datetime import datetime

from memopipe.io.artifact import ArtifactFactory
from memopipe.io.codecs import SingletonIo
from memopipe.kernel.producer import Producer
from memopipe.pipeline import Pipeline
from memopipe.report import normalize_title, signature_manifest, write_run_report


def _pipeline():
    return Pipeline("mem://out", ArtifactFactory.with_memory_store())


def test_normalize_title():
    assert normalize_title("nightly build") == "nightly-build"
    assert normalize_title("  a \t b\nc ") == "a-b-c"
    assert normalize_title("single") == "single"


def test_write_run_report_names_artifacts_with_timestamp():
    pipeline = _pipeline()
    step = pipeline.persist_as.singleton.text(Producer.from_memory(1, name="One"), int)
    stamp = datetime(2024, 3, 5, 7, 8, 9)

    report = write_run_report("my run", [step], pipeline.create_artifact, timestamp=stamp)

    prefix = "mem://out/summary/my-run-2024-03-05-07-08-09"
    assert report.title == "my-run-2024-03-05-07-08-09"
    assert report.workflow_url == f"{prefix}.workflow.json"
    assert report.html_url == f"{prefix}.html"
    assert report.signatures_url == f"{prefix}.signatures.json"

    blobs = pipeline.artifact_factory.memory_store.blobs
    workflow = json.loads(blobs[report.workflow_url])
    assert workflow["targets"] == [step.signature.id]
    assert blobs[report.html_url].decode("utf-8").startswith("<!DOCTYPE html>")


def test_report_does_not_compute_targets():
    pipeline = _pipeline()
    step = pipeline.persist_as.singleton.text(Producer.from_memory(1, name="One"), int)
    write_run_report("t", [step], pipeline.create_artifact)
    assert not step.is_computed
    assert not step.artifact.exists()


def test_signature_manifest_lists_targets_in_order():
    one = Producer.from_memory(1, name="One")
    two = Producer.from_memory(2, name="Two").persisted(
        SingletonIo.json(int), _pipeline().create_artifact("two.json")
    )
    manifest = signature_manifest([two, one])
    entries = json.loads(manifest)

    assert manifest.endswith("\n")
    assert [e["kind"] for e in entries] == ["Two", "One"]
    assert entries[1] == {"kind": "One", "version": "0", "id": one.signature.id}
