"""Run reports: audit artifacts written after every run.

Each run writes three artifacts sharing one ``<title>-<timestamp>`` prefix
under ``summary/``:

- ``.workflow.json``: the Workflow snapshot (machine-readable)
- ``.html``: the Workflow rendering (human-readable)
- ``.signatures.json``: the signature of every target

Reports are built from step metadata only, so they can be written whether or
not the run computed anything.
"""

import json
import logging
import re
from datetime import datetime
from typing import Callable, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from memopipe.io.artifact import Artifact
from memopipe.io.codecs import SingletonIo
from memopipe.kernel.producer import Producer
from memopipe.kernel.workflow import Workflow

logger = logging.getLogger(__name__)

SUMMARY_DIR = "summary"
TIMESTAMP_FORMAT = "%Y-%m-%d-%H-%M-%S"


class RunReport(BaseModel):
    """Locations of the audit artifacts of one run."""
    title: str
    workflow_url: str
    html_url: str
    signatures_url: str

    model_config = ConfigDict(frozen=True, extra="forbid")


def normalize_title(raw_title: str) -> str:
    return re.sub(r"\s+", "-", raw_title.strip())


def signature_manifest(targets: Sequence[Producer]) -> str:
    """Pretty-printed JSON list of the targets' signatures, in target order."""
    entries = [t.signature.model_dump(mode="json") for t in targets]
    return json.dumps(entries, indent=2, ensure_ascii=False) + "\n"


def write_report_artifacts(
    prefix: str,
    targets: Sequence[Producer],
    create_artifact: Callable[[str], Artifact],
) -> RunReport:
    """Write the three audit artifacts for ``targets`` under ``prefix``.

    Args:
        prefix: Path (or URL) prefix, e.g. ``summary/nightly-2024-01-01-00-00-00``
        targets: Producers the run was asked to produce
        create_artifact: Resolves a path to an Artifact
    """
    workflow = Workflow.for_pipeline(*targets)

    workflow_artifact = create_artifact(f"{prefix}.workflow.json")
    workflow_artifact.write(SingletonIo.json(Workflow).serialize(workflow))

    html_artifact = create_artifact(f"{prefix}.html")
    html_artifact.write(SingletonIo.text(str).serialize(workflow.render_html()))

    signatures_artifact = create_artifact(f"{prefix}.signatures.json")
    signatures_artifact.write(signature_manifest(targets).encode("utf-8"))

    title = prefix.rsplit("/", 1)[-1]
    logger.debug("Wrote report %s for %d targets", title, len(targets))
    return RunReport(
        title=title,
        workflow_url=workflow_artifact.url,
        html_url=html_artifact.url,
        signatures_url=signatures_artifact.url,
    )


def write_run_report(
    raw_title: str,
    targets: Sequence[Producer],
    create_artifact: Callable[[str], Artifact],
    timestamp: Optional[datetime] = None,
) -> RunReport:
    """Write timestamped audit artifacts for a run under ``summary/``."""
    stamp = (timestamp or datetime.now()).strftime(TIMESTAMP_FORMAT)
    prefix = f"{SUMMARY_DIR}/{normalize_title(raw_title)}-{stamp}"
    return write_report_artifacts(prefix, list(targets), create_artifact)
