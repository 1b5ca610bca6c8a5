import pytest
import torch

from spikepipe.core.functional import region_sizes
from spikepipe.core.tensor import Shape
from spikepipe.processes import (
    AdaptiveThreshold,
    DefaultOnOffFilter,
    FeatureScaling,
    LatencyCoding,
    MaxScaling,
    SeparateSign,
    SumPooling,
    TemporalPooling,
)


def run_train(stage, samples):
    """Drive every train pass like the engine does, returning the final samples."""
    samples = [s.clone() for s in samples]
    n = stage.train_pass_number()
    for p in range(n):
        for j, s in enumerate(samples):
            result = stage.process_train_sample("x", s, p, j, len(samples))
            if result is not None:
                samples[j] = result
    return samples


def test_max_scaling():
    t = torch.tensor([0.0, 2.0, 4.0, 1.0]).reshape(2, 2, 1, 1)
    stage = MaxScaling()
    assert stage.process_test_sample("x", t, 0, 1) is None
    assert t.reshape(-1).tolist() == [0.0, 0.5, 1.0, 0.25]


def test_max_scaling_leaves_silent_sample():
    t = torch.zeros(2, 2, 1, 1)
    MaxScaling().process_train("x", t)
    assert torch.equal(t, torch.zeros(2, 2, 1, 1))


def test_feature_scaling_learns_train_range():
    stage = FeatureScaling()
    stage.resize((1, 2, 1, 1))
    train = [torch.tensor([0.0, 10.0]).reshape(1, 2, 1, 1), torch.tensor([4.0, 2.0]).reshape(1, 2, 1, 1)]

    out = run_train(stage, train)
    assert out[0].reshape(-1).tolist() == [0.0, 1.0]
    assert out[1].reshape(-1).tolist() == pytest.approx([0.4, 0.2])

    test = torch.tensor([20.0, -5.0]).reshape(1, 2, 1, 1)
    stage.process_test_sample("x", test, 0, 1)
    assert test.reshape(-1).tolist() == [1.0, 0.0]


def test_feature_scaling_is_per_channel():
    stage = FeatureScaling()
    t = torch.zeros(1, 1, 1, 2)
    t[..., 0], t[..., 1] = 1.0, 100.0
    u = torch.zeros(1, 1, 1, 2)
    u[..., 0], u[..., 1] = 3.0, 300.0

    out = run_train(stage, [t, u])
    assert out[0].reshape(-1).tolist() == [0.0, 0.0]
    assert out[1].reshape(-1).tolist() == [1.0, 1.0]


def test_feature_scaling_refits_on_new_run():
    stage = FeatureScaling()
    run_train(stage, [torch.zeros(1, 1, 1, 1), torch.full((1, 1, 1, 1), 10.0)])
    out = run_train(stage, [torch.zeros(1, 1, 1, 1), torch.full((1, 1, 1, 1), 2.0)])
    assert out[1].item() == 1.0


def test_sum_pooling_preserves_total():
    torch.manual_seed(0)
    t = torch.rand(6, 4, 2, 3)
    stage = SumPooling(3, 2)
    assert stage.resize(Shape.of(t)) == (3, 2, 2, 3)

    out = stage.process_train("x", t)
    assert out.shape == (3, 2, 2, 3)
    assert out.sum().item() == pytest.approx(t.sum().item(), rel=1e-5)


def test_sum_pooling_even_regions():
    t = torch.ones(4, 4, 1, 1)
    out = SumPooling(2, 2).process_test("x", t)
    assert out.reshape(-1).tolist() == [4.0, 4.0, 4.0, 4.0]


def test_sum_pooling_rejects_upsampling():
    with pytest.raises(ValueError):
        SumPooling(8, 8).resize((4, 4, 1, 1))


def test_region_sizes_cover_input():
    assert region_sizes(7, 3) == [3, 3, 3]
    assert region_sizes(4, 2) == [2, 2]


def test_temporal_pooling():
    t = torch.arange(8, dtype=torch.float32).reshape(1, 1, 4, 2)
    stage = TemporalPooling(2)
    assert stage.resize((1, 1, 4, 2)) == (1, 1, 2, 2)

    out = stage.process_train("x", t)
    assert out.shape == (1, 1, 2, 2)
    # channel 0 holds 0, 2, 4, 6; channel 1 holds 1, 3, 5, 7
    assert out[0, 0, :, 0].tolist() == [2.0, 10.0]
    assert out[0, 0, :, 1].tolist() == [4.0, 12.0]


def test_on_off_filter_shape_and_sign():
    stage = DefaultOnOffFilter(size=5, sigma_center=1.0, sigma_surround=2.0)
    assert stage.resize((9, 9, 2, 1)) == (9, 9, 2, 2)

    t = torch.zeros(9, 9, 2, 1)
    t[4, 4, :, 0] = 1.0
    out = stage.process_train("x", t)

    assert out.shape == (9, 9, 2, 2)
    assert (out >= 0).all()
    assert out[4, 4, 0, 0] > 0  # ON response at the bright spot
    assert out[4, 4, 0, 1] == 0


def test_on_off_filter_rejects_even_size():
    with pytest.raises(ValueError):
        DefaultOnOffFilter(size=4)


def test_separate_sign():
    t = torch.tensor([1.0, -2.0]).reshape(1, 2, 1, 1)
    stage = SeparateSign()
    assert stage.resize((1, 2, 1, 1)) == (1, 2, 1, 2)

    out = stage.process_test("x", t)
    assert out[..., 0].reshape(-1).tolist() == [1.0, 0.0]
    assert out[..., 1].reshape(-1).tolist() == [0.0, 2.0]


def test_latency_coding_in_place():
    t = torch.tensor([0.0, 0.5, 1.0, 0.25]).reshape(2, 2, 1, 1)
    assert LatencyCoding(max_time=2.0).process_test("x", t) is None
    assert t.reshape(-1).tolist() == pytest.approx([0.0, 1.0, 0.002, 1.5])


def test_adaptive_threshold_moves_towards_target_rate():
    stage = AdaptiveThreshold(passes=5, target_rate=0.25, lr=0.5, annealing=1.0, initial_threshold=0.05)
    stage.resize((4, 4, 1, 1))
    torch.manual_seed(0)
    samples = [torch.rand(4, 4, 1, 1) for _ in range(10)]

    out = run_train(stage, samples)

    assert stage.thresholds.item() > 0.05
    assert set(torch.cat([o.reshape(-1) for o in out]).tolist()) <= {0.0, 1.0}


def test_adaptive_threshold_test_pass_only_fires():
    stage = AdaptiveThreshold(initial_threshold=0.5)
    stage.resize((1, 3, 1, 1))
    before = stage.thresholds.clone()

    t = torch.tensor([0.2, 0.5, 0.9]).reshape(1, 3, 1, 1)
    stage.process_test_sample("x", t, 0, 1)

    assert t.reshape(-1).tolist() == [0.0, 1.0, 1.0]
    assert torch.equal(stage.thresholds, before)


def test_adaptive_threshold_anneals_per_pass():
    stage = AdaptiveThreshold(passes=2, lr=0.1, annealing=0.5)
    stage.resize((1, 1, 1, 1))
    run_train(stage, [torch.zeros(1, 1, 1, 1)] * 2)
    assert stage.current_lr == pytest.approx(0.025)


@pytest.mark.parametrize("kwargs", [{"passes": 0}, {"target_rate": 1.5}, {"min_threshold": 0.0}])
def test_adaptive_threshold_validation(kwargs):
    with pytest.raises(ValueError):
        AdaptiveThreshold(**kwargs)
