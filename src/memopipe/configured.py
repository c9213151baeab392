"""Pipeline whose persistence and run mode come from configuration."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from memopipe.config import PipelineConfig
from memopipe.errors import UnknownStepError
from memopipe.io.artifact import ArtifactFactory
from memopipe.io.codecs import Codec
from memopipe.kernel.producer import PersistedProducer, Producer
from memopipe.pipeline import Pipeline, PersistHelpers

logger = logging.getLogger(__name__)


class ConfiguredPipeline(Pipeline):
    """Pipeline driven by a PipelineConfig.

    Steps are persisted through ``optionally_persist`` under a step name; the
    configuration decides per name whether and where to persist. ``run``
    honours ``dryRun`` and ``runOnly``.
    """

    def __init__(self, config: PipelineConfig, artifact_factory: Optional[ArtifactFactory] = None):
        output_root = config.output.dir if config.output.dir else Path.cwd()
        super().__init__(output_root, artifact_factory)
        self.config = config
        self.persisted_steps_by_name: Dict[str, PersistedProducer] = {}
        self.optionally_persist_as = PersistHelpers(self.optionally_persist)

    def optionally_persist(
        self,
        original: Producer,
        step_name: str,
        codec: Codec,
        suffix: str = "",
    ) -> Producer:
        """Persist ``original`` if the configuration asks for it.

        ``output.persist.<step_name>`` set to true persists to the
        auto-generated path, a string persists to that path, false or absent
        returns ``original`` unchanged.
        """
        policy = self.config.persist_policy(step_name)
        if policy is None or not policy.enabled:
            logger.debug("Step %s is not persisted", step_name)
            return original
        if policy.path is None:
            persisted = self.persist(original, codec, suffix)
        else:
            persisted = self.persist(original, codec, path=policy.path)
        self.persisted_steps_by_name[step_name] = persisted
        return persisted

    def run(self, title: str) -> List[Any]:
        if self.config.dry_run:
            return self.dry_run(title)
        if self.config.run_only is not None:
            names = list(dict.fromkeys(self.config.run_only))
            if not names:
                raise UnknownStepError([], "runOnly is set but names no steps")
            unmatched = [n for n in names if n not in self.persisted_steps_by_name]
            if len(unmatched) == 1:
                raise UnknownStepError(unmatched, f"Unknown step name: {unmatched[0]}")
            if unmatched:
                raise UnknownStepError(unmatched, f"Unknown step names: [{','.join(unmatched)}]")
            return self.run_only(title, *[self.persisted_steps_by_name[n] for n in names])
        return super().run(title)
