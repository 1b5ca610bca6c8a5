"""
Experiment definition.

An experiment gathers the inputs, the main pipeline and the output taps, then
hands them to the engine. Shapes are resolved once in ``initialize``: the
first input's sample shape flows through every stage's ``compute_shape`` and
each tap resolves from the shape of the stage it is bound to.

Example (programmatic):
    >>> exp = Experiment("mnist-latency")
    >>> exp.add_train(NumpyInput("data/train"))
    >>> exp.add_test(NumpyInput("data/test"))
    >>> exp.push(MaxScaling())
    >>> coding = exp.push(LatencyCoding())
    >>> tap = exp.output(TimeObjectiveOutput(0.65), coding, "coding")
    >>> tap.add_analysis(Activity())
    >>> summary = exp.run()

Example (from YAML)::

    experiment:
      name: mnist-latency
      pipeline:
        - type: MaxScaling
        - type: LatencyCoding
          name: coding
          params: {max_time: 1.0}
      outputs:
        - name: coding_out
          stage: coding             # stage name or index
          converter: {type: TimeObjectiveOutput, params: {t_obj: 0.65}}
          postprocessing:
            - {type: SumPooling, params: {target_height: 4, target_width: 4}}
          analysis:
            - {type: Svm}
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .config import ConfigValidationError, ExecutionParams, get_execution_params
from .core.analysis import Analysis
from .core.output import Output
from .core.process import Process
from .core.tensor import Shape
from .data.input import Input
from .errors import PipelineConfigError
from .execution.engine import RunSummary, SparseIntermediateExecution
from .execution.observer import ProgressObserver
from .registry import ANALYSES, CONVERTERS, PROCESSES, Registry
from .utils.logging import RunLog
from .utils.signals import CancellationToken

# Registration side effects
from . import analysis as _analysis  # noqa: F401
from . import processes as _processes  # noqa: F401


logger = logging.getLogger(__name__)


# =============================================================================
# EXPERIMENT
# =============================================================================


class Experiment:
    """
    Inputs, pipeline and output taps of one run.

    Args:
        name: Experiment name, used in logs.
        params: Engine parameters.

    Attributes:
        pipeline: Main stages in execution order.
        outputs: Output taps.
        train_inputs: Sources of the train partition.
        test_inputs: Sources of the test partition.
    """

    def __init__(self, name: str, params: Optional[ExecutionParams] = None) -> None:
        self.name = name
        self.params = params or ExecutionParams()
        self.pipeline: List[Process] = []
        self.outputs: List[Output] = []
        self.train_inputs: List[Optional[Input]] = []
        self.test_inputs: List[Optional[Input]] = []

    # -------------------------------------------------------------------------
    # Building
    # -------------------------------------------------------------------------

    def push(self, process: Process) -> Process:
        """Append a stage to the main pipeline."""
        process.index = len(self.pipeline)
        self.pipeline.append(process)
        return process

    def add_train(self, source: Optional[Input]) -> None:
        self.train_inputs.append(source)

    def add_test(self, source: Optional[Input]) -> None:
        self.test_inputs.append(source)

    def output(
        self,
        converter=None,
        process: Union[Process, int, str, None] = None,
        name: str = "",
    ) -> Output:
        """
        Attach an output tap.

        Args:
            converter: OutputConverter, callable or None (identity).
            process: Stage, stage index or stage name the tap reads. Defaults
                to the last stage pushed so far.
            name: Tap name. Defaults to ``output<N>``.

        Returns:
            The new tap, ready for ``add_postprocessing`` / ``add_analysis``.
        """
        index = self._stage_index(process)
        tap = Output(name or f"output{len(self.outputs)}", index, converter)
        self.outputs.append(tap)
        return tap

    def _stage_index(self, process: Union[Process, int, str, None]) -> int:
        if process is None:
            if not self.pipeline:
                raise PipelineConfigError("Cannot attach an output to an empty pipeline")
            return len(self.pipeline) - 1
        if isinstance(process, Process):
            for i, p in enumerate(self.pipeline):
                if p is process:
                    return i
            raise PipelineConfigError(f"{process.describe()} is not part of the pipeline")
        if isinstance(process, str):
            for i, p in enumerate(self.pipeline):
                if p.name == process:
                    return i
            raise PipelineConfigError(f"No stage named {process!r} in the pipeline")
        index = int(process)
        if not 0 <= index < len(self.pipeline):
            raise PipelineConfigError(
                f"Stage index {index} out of range for {len(self.pipeline)} stages"
            )
        return index

    # -------------------------------------------------------------------------
    # Shape resolution
    # -------------------------------------------------------------------------

    def input_shape(self) -> Shape:
        """Sample shape of the first non-null input, train inputs first."""
        for source in list(self.train_inputs) + list(self.test_inputs):
            if source is not None:
                return Shape.from_sequence(source.shape)
        raise PipelineConfigError(f"Experiment {self.name!r} has no input")

    def initialize(self, input_shape: Optional[Sequence[int]] = None) -> Shape:
        """
        Resolve every declared shape.

        Args:
            input_shape: Sample shape entering the pipeline. Read from the
                inputs when None.

        Returns:
            Declared shape of the last stage.
        """
        shape = Shape.from_sequence(input_shape) if input_shape is not None else self.input_shape()
        logger.debug(f"{self.name}: input shape {shape.to_string()}")

        for i, process in enumerate(self.pipeline):
            process.index = i
            shape = process.resize(shape)
            logger.debug(f"  [{i}] {process.describe()} -> {shape.to_string()}")

        for tap in self.outputs:
            if tap.index >= len(self.pipeline):
                raise PipelineConfigError(
                    f"Output {tap.name!r} is bound to stage {tap.index}, "
                    f"but the pipeline has {len(self.pipeline)} stages"
                )
            tap_shape = tap.resize(self.pipeline[tap.index].shape())
            logger.debug(f"  output {tap.name} -> {tap_shape.to_string()}")

        return shape

    # -------------------------------------------------------------------------
    # Running
    # -------------------------------------------------------------------------

    def run(
        self,
        refresh_interval: Optional[int] = None,
        cancel: Optional[CancellationToken] = None,
        observer: Optional[ProgressObserver] = None,
        log: Optional[RunLog] = None,
    ) -> RunSummary:
        """Resolve shapes, then run the engine. See ``SparseIntermediateExecution.run``."""
        self.initialize()
        engine = SparseIntermediateExecution(self, self.params, observer=observer, log=log)
        return engine.run(refresh_interval=refresh_interval, cancel=cancel)

    def __repr__(self) -> str:
        return (
            f"<Experiment {self.name!r} stages={len(self.pipeline)} "
            f"outputs={len(self.outputs)} train={len(self.train_inputs)} "
            f"test={len(self.test_inputs)}>"
        )


# =============================================================================
# BUILDING FROM CONFIG
# =============================================================================


def _create(registry: Registry, spec: Union[str, Mapping[str, Any]], with_name: bool = False):
    """Instantiate ``{type, name, params}`` (or a bare type name) from ``registry``."""
    if isinstance(spec, str):
        spec = {"type": spec}
    if not isinstance(spec, Mapping) or "type" not in spec:
        raise ConfigValidationError(f"Expected a mapping with a 'type' key, got {spec!r}")

    params: Dict[str, Any] = dict(spec.get("params") or {})
    if with_name and spec.get("name"):
        params["name"] = spec["name"]
    try:
        return registry.create(spec["type"], **params)
    except KeyError as e:
        raise ConfigValidationError(str(e.args[0]) if e.args else str(e)) from e
    except TypeError as e:
        raise ConfigValidationError(f"Bad parameters for {spec['type']}: {e}") from e


def build_experiment(
    config: Mapping[str, Any],
    train_inputs: Sequence[Optional[Input]] = (),
    test_inputs: Sequence[Optional[Input]] = (),
) -> Experiment:
    """
    Build an experiment from a configuration dictionary.

    Reads the ``experiment`` section for stages and taps and the ``execution``
    section for engine parameters.

    Args:
        config: Full configuration (see ``load_config``).
        train_inputs: Train sources.
        test_inputs: Test sources.

    Returns:
        Experiment, not yet initialized.

    Raises:
        ConfigValidationError: Unknown type names, bad parameters or
            malformed sections.
    """
    section = config.get("experiment") or {}
    if not isinstance(section, Mapping):
        raise ConfigValidationError("'experiment' must be a mapping")

    exp = Experiment(section.get("name", "experiment"), get_execution_params(config))
    for source in train_inputs:
        exp.add_train(source)
    for source in test_inputs:
        exp.add_test(source)

    for stage in section.get("pipeline") or []:
        process: Process = _create(PROCESSES, stage, with_name=True)
        exp.push(process)

    for tap_spec in section.get("outputs") or []:
        if not isinstance(tap_spec, Mapping):
            raise ConfigValidationError(f"Output entries must be mappings, got {tap_spec!r}")
        converter = _create(CONVERTERS, tap_spec["converter"]) if tap_spec.get("converter") else None
        try:
            tap = exp.output(converter, tap_spec.get("stage"), tap_spec.get("name", ""))
        except PipelineConfigError as e:
            raise ConfigValidationError(str(e)) from e

        for stage in tap_spec.get("postprocessing") or []:
            tap.add_postprocessing(_create(PROCESSES, stage, with_name=True))
        for item in tap_spec.get("analysis") or []:
            analysis: Analysis = _create(ANALYSES, item)
            tap.add_analysis(analysis)

    logger.debug(f"Built {exp!r}")
    return exp


__all__ = [
    "Experiment",
    "build_experiment",
]
