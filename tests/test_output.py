import pytest
import torch

from spikepipe.config import ExecutionParams
from spikepipe.core.analysis import NoPassAnalysis
from spikepipe.core.output import (
    DefaultOutput,
    FunctionOutput,
    Output,
    ScaledOutput,
    TimeObjectiveOutput,
    as_converter,
)
from spikepipe.core.tensor import Shape
from spikepipe.data.input import TensorListInput
from spikepipe.errors import PipelineConfigError
from spikepipe.experiment import Experiment

from conftest import RecordingAnalysis, RecordingStage, constant


def tap_experiment(analysis, train=2, test=1):
    stage = RecordingStage()
    exp = Experiment("tap", ExecutionParams(refresh_interval=None))
    exp.add_train(TensorListInput([(f"tr{i}", constant(1.0)) for i in range(train)], shape=(4, 4, 1, 1)))
    exp.add_test(TensorListInput([(f"te{i}", constant(1.0)) for i in range(test)], shape=(4, 4, 1, 1)))
    exp.push(stage)
    exp.output(None, stage, "tap").add_analysis(analysis)
    return exp


# =============================================================================
# Converters
# =============================================================================


def test_default_output_is_identity():
    t = torch.rand(2, 2, 1, 1)
    assert torch.equal(DefaultOutput()(t), t)


def test_scaled_output():
    assert torch.equal(ScaledOutput(2)(torch.ones(2, 2, 1, 1)), torch.full((2, 2, 1, 1), 2.0))


def test_time_objective_output():
    times = torch.tensor([0.0, 0.25, 0.5, 0.75]).reshape(1, 4, 1, 1)
    out = TimeObjectiveOutput(t_obj=0.5)(times).reshape(-1)
    assert out.tolist() == [0.0, 0.5, 0.0, 0.0]


def test_time_objective_rejects_non_positive():
    with pytest.raises(ValueError):
        TimeObjectiveOutput(0.0)


def test_function_output_shape():
    conv = FunctionOutput(lambda t: t[:, :, :1], shape_fn=lambda s: Shape(s.height, s.width, 1, s.channels))
    assert conv.compute_shape(Shape(3, 3, 5, 2)) == (3, 3, 1, 2)
    assert conv(torch.ones(3, 3, 5, 2)).shape == (3, 3, 1, 2)


def test_as_converter():
    assert isinstance(as_converter(None), DefaultOutput)
    assert isinstance(as_converter(lambda t: t), FunctionOutput)
    scaled = ScaledOutput(3)
    assert as_converter(scaled) is scaled
    with pytest.raises(TypeError):
        as_converter(42)


def test_output_rejects_negative_index():
    with pytest.raises(ValueError):
        Output("bad", index=-1)


# =============================================================================
# Analysis lifecycle
# =============================================================================


def test_single_pass_lifecycle_order():
    analysis = RecordingAnalysis()
    tap_experiment(analysis).run()

    assert analysis.events == [
        "before_train_pass(0)", "train(tr0,0)", "train(tr1,0)", "after_train_pass(0)",
        "before_test", "test(te0)", "after_test",
    ]


def test_multi_pass_lifecycle_order():
    analysis = RecordingAnalysis(passes=2)
    tap_experiment(analysis, train=1, test=0).run()

    assert analysis.events == [
        "before_train_pass(0)", "train(tr0,0)", "after_train_pass(0)",
        "before_train_pass(1)", "train(tr0,1)", "after_train_pass(1)",
        "before_test", "after_test",
    ]


def test_zero_pass_analysis_only_gets_after_test():
    analysis = RecordingAnalysis(passes=0)
    tap_experiment(analysis).run()

    assert analysis.events == ["after_test"]


def test_negative_pass_analysis_aborts():
    with pytest.raises(PipelineConfigError):
        tap_experiment(RecordingAnalysis(passes=-1)).run()


class FinalState(NoPassAnalysis):
    def __init__(self, stage):
        super().__init__()
        self.stage = stage
        self.calls_at_end = None

    def after_test(self):
        self.calls_at_end = len(self.stage.train_calls) + len(self.stage.test_calls)


def test_no_pass_analysis_sees_final_stage_state():
    stage = RecordingStage()
    exp = Experiment("final", ExecutionParams(refresh_interval=None))
    exp.add_train(TensorListInput([("a", constant(1.0)), ("b", constant(1.0))]))
    exp.push(stage)
    analysis = exp.output(None, stage, "tap").add_analysis(FinalState(stage))

    exp.run()

    assert analysis.calls_at_end == 2
    with pytest.raises(RuntimeError):
        analysis.process_train_sample("a", constant(1.0), 0)


def test_analysis_logs_to_run_results(caplog):
    analysis = RecordingAnalysis()
    with caplog.at_level("INFO", logger="spikepipe"):
        tap_experiment(analysis).run()

    assert analysis.logger.name == "spikepipe.results.tap"
    assert "tap, analysis RecordingAnalysis:" in caplog.text
