"""Pipeline orchestrator: registers persisted targets and runs them.

A pipeline owns an ordered registry of persisted targets. ``run`` computes
all of them; ``run_only`` computes a subset after checking that every
persisted upstream step outside that subset has already been computed.
Every run ends by writing a report (see ``memopipe.report``), even when a
step failed.
"""

import logging
import os
import time
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

from memopipe.errors import (
    AmbiguousStepError,
    DuplicateTargetError,
    MissingUpstreamError,
    NonPersistedTargetError,
    StepFailedError,
    UnknownStepError,
)
from memopipe.io.artifact import (
    Artifact,
    ArtifactFactory,
    FileArtifact,
    has_scheme,
    path_to_url,
    resolve_url,
    to_http_url,
)
from memopipe.io.codecs import Codec, LineCollectionIo, LineIteratorIo, SingletonIo
from memopipe.kernel.producer import PersistedProducer, Producer
from memopipe.kernel.signature import derive_signature
from memopipe.kernel.workflow import persisted_upstream
from memopipe.report import RunReport, normalize_title, write_report_artifacts, write_run_report

logger = logging.getLogger(__name__)

DATA_DIR = "data"

# Dependency name under which the codec enters cache path derivation
CODEC_DEPENDENCY = "__codec__"


def auto_generated_path(producer: Producer, codec: Codec) -> str:
    """``<kind>.<id>`` where the id also covers the codec's format.

    The codec does not change the step's logical signature, but it does
    change the path, so data written in one format is never read with
    another.
    """
    info = producer.step_info
    deps = {name: dep.signature for name, dep in info.dependencies.items()}
    deps[CODEC_DEPENDENCY] = codec.signature()
    cache_signature = derive_signature(info.kind, info.parameters, deps, info.version)
    return cache_signature.name


class _Formats:
    def __init__(self, persist: Callable[..., Producer], io):
        self._persist = persist
        self._io = io

    def text(self, step: Producer, value_type: Any = str, suffix: str = ".txt", **kwargs):
        return self._persist(step, codec=self._io.text(value_type), suffix=suffix, **kwargs)

    def json(self, step: Producer, value_type: Any = Any, suffix: str = ".json", **kwargs):
        return self._persist(step, codec=self._io.json(value_type), suffix=suffix, **kwargs)


class PersistHelpers:
    """Common-case persistence: ``helpers.singleton.text(step, int)`` etc."""

    def __init__(self, persist: Callable[..., Producer]):
        self.singleton = _Formats(persist, SingletonIo)
        self.collection = _Formats(persist, LineCollectionIo)
        self.iterator = _Formats(persist, LineIteratorIo)


class Pipeline:
    """A fully configured end-to-end pipeline writing under ``output_root``."""

    def __init__(
        self,
        output_root: Union[str, os.PathLike, None] = None,
        artifact_factory: Optional[ArtifactFactory] = None,
    ):
        if output_root is None:
            output_root = Path.cwd()
        if isinstance(output_root, str) and has_scheme(output_root):
            self.output_root = output_root
        else:
            self.output_root = path_to_url(output_root)
        self.artifact_factory = artifact_factory or ArtifactFactory()
        self._targets: List[PersistedProducer] = []
        self.persist_as = PersistHelpers(self.persist)
        self.last_report: Optional[RunReport] = None

    @classmethod
    def save_to_file_system(cls, root_dir: Union[str, os.PathLike]) -> "Pipeline":
        """Pipeline writing all output under a local directory."""
        return cls(Path(root_dir), ArtifactFactory())

    @property
    def targets(self) -> Tuple[PersistedProducer, ...]:
        return tuple(self._targets)

    def absolute_output_url(self, path: str) -> str:
        return resolve_url(self.output_root, path)

    def create_artifact(self, url_or_path: str) -> Artifact:
        """Artifact at an absolute URL or at a path relative to the output root."""
        return self.artifact_factory.create_artifact(self.absolute_output_url(url_or_path))

    # ------------------------------------------------------------------ #
    # Registration
    # ------------------------------------------------------------------ #

    def persist(
        self,
        original: Producer,
        codec: Codec,
        suffix: str = "",
        *,
        name: Optional[str] = None,
        path: Optional[str] = None,
        artifact: Optional[Artifact] = None,
    ) -> PersistedProducer:
        """Persist a producer and register it as a target of this pipeline.

        Args:
            original: The producer to cache
            codec: Serialization format
            suffix: File suffix appended to the auto-generated path
            name: Kind name to give the step (changes its signature)
            path: Explicit path or URL instead of the auto-generated one
            artifact: Explicit artifact instead of one derived from a path

        Returns:
            The registered PersistedProducer

        Raises:
            DuplicateTargetError: The step is already registered elsewhere and
                no explicit path or artifact was given
        """
        explicit = path is not None or artifact is not None
        if name is not None:
            original = original.with_name(name)
        if artifact is None:
            if path is None:
                path = f"{DATA_DIR}/{auto_generated_path(original, codec)}{suffix}"
            artifact = self.create_artifact(path)
        return self.add_target(original.persisted(codec, artifact), explicit_location=explicit)

    def add_target(self, persisted: PersistedProducer, explicit_location: bool = True) -> PersistedProducer:
        """Register an already persisted producer.

        Registering the same signature at the same URL returns the existing
        target. A second URL for an already registered signature is only
        accepted when the location was chosen explicitly.
        """
        for existing in self._targets:
            if existing.signature != persisted.signature:
                continue
            if existing.artifact.url == persisted.artifact.url:
                return existing
            if not explicit_location:
                raise DuplicateTargetError(
                    persisted.step_info.kind, existing.artifact.url, persisted.artifact.url
                )
            logger.warning(
                "Step %s registered at a second location %s (already at %s)",
                persisted.signature.kind, persisted.artifact.url, existing.artifact.url,
            )
        self._targets.append(persisted)
        return persisted

    # ------------------------------------------------------------------ #
    # Running
    # ------------------------------------------------------------------ #

    def run(self, title: str) -> List[Any]:
        """Compute every registered target, along with any upstream dependencies."""
        return self._run_pipeline_return_results(title, list(self._targets))

    def run_only(self, title: str, *targets: Union[str, Producer]) -> List[Any]:
        """Compute only the given targets.

        Targets are step kind names or producer instances. Persisted upstream
        dependencies outside the requested set must already exist; they are
        never computed by a partial run.

        Raises:
            UnknownStepError: A name matches no registered target
            AmbiguousStepError: A name matches several registered targets
            NonPersistedTargetError: A producer instance is not a registered target
            MissingUpstreamError: A persisted upstream step has not been computed
        """
        if not targets:
            raise UnknownStepError([], "No steps requested")
        resolved = self._resolve_targets(targets)
        target_ids = {t.signature.id for t in resolved}

        missing = [
            dep for dep in persisted_upstream(resolved)
            if dep.signature.id not in target_ids and not dep.artifact.exists()
        ]
        if missing:
            raise MissingUpstreamError(
                [t.step_info.kind for t in resolved],
                [d.step_info.kind for d in missing],
            )
        return self._run_pipeline_return_results(title, resolved)

    def run_one(self, target: PersistedProducer, output_location_override: Optional[str] = None) -> Any:
        """Run a single persisted target and return its value.

        With ``output_location_override`` the value is written there instead,
        without changing the step's signature.
        """
        if output_location_override is not None:
            target = target.change_artifact(self.create_artifact(output_location_override))
        kind = target.step_info.kind
        results = self.run_only(kind, target)
        if not results:
            raise StepFailedError(kind)
        return results[0]

    def dry_run(self, raw_title: str, output_dir: Union[str, os.PathLike, None] = None) -> List[Any]:
        """Write the report for every registered target without computing anything.

        Output goes to ``output_dir`` if given, else under ``summary/``.
        """
        outputs = list(self._targets)
        title = f"{normalize_title(raw_title)}-dryRun"
        if output_dir is not None:
            out = Path(output_dir)
            report = write_report_artifacts(title, outputs, lambda p: FileArtifact(out / p))
        else:
            report = write_report_artifacts(f"summary/{title}", outputs, self.create_artifact)
        self.last_report = report
        logger.info("Summary written to %s", to_http_url(report.html_url))
        return []

    def _resolve_targets(self, requested: Sequence[Union[str, Producer]]) -> List[PersistedProducer]:
        unknown: List[str] = []
        non_persisted: List[str] = []
        resolved: List[PersistedProducer] = []
        for target in requested:
            if isinstance(target, str):
                matches = [t for t in self._targets if t.step_info.kind == target]
                if not matches:
                    unknown.append(target)
                elif len({m.artifact.url for m in matches}) > 1:
                    raise AmbiguousStepError(target, len(matches))
                else:
                    resolved.append(matches[0])
            elif isinstance(target, PersistedProducer):
                resolved.append(target)
            else:
                match = next((t for t in self._targets if t.signature == target.signature), None)
                if match is None:
                    non_persisted.append(target.step_info.kind)
                else:
                    resolved.append(match)

        if unknown:
            raise UnknownStepError(unknown)
        if non_persisted:
            raise NonPersistedTargetError(non_persisted)

        unique: List[PersistedProducer] = []
        for t in resolved:
            if not any(t is u for u in unique):
                unique.append(t)
        return unique

    def _run_pipeline_return_results(self, raw_title: str, outputs: Sequence[Producer]) -> List[Any]:
        try:
            start = time.time()
            result = [p.get() for p in outputs]
            duration = time.time() - start
            logger.info("Ran pipeline in %.3f s", duration)
        except Exception:
            logger.exception("Untrapped exception while running pipeline %s", raw_title)
            result = []

        report = write_run_report(raw_title, outputs, self.create_artifact)
        self.last_report = report
        logger.info("Summary written to %s", to_http_url(report.html_url))
        return result
