import logging

import pytest
import torch

from spikepipe.analysis import Activity, ActivityStats, Svm


def drive(analysis, train, test):
    """Run the analysis lifecycle for one training pass."""
    analysis.before_train_pass(0)
    for label, sample in train:
        analysis.process_train_sample(label, sample, 0)
    analysis.after_train_pass(0)
    analysis.before_test()
    for label, sample in test:
        analysis.process_test_sample(label, sample)
    analysis.after_test()


def one_hot(position, size=4):
    t = torch.zeros(1, size, 1, 1)
    t[0, position, 0, 0] = 1.0
    return t


def test_activity_stats():
    stats = ActivityStats()
    stats.update(torch.tensor([0.0, 2.0, 0.0, -1.0]).reshape(1, 4, 1, 1))
    stats.update(torch.zeros(1, 4, 1, 1))

    assert stats.samples == 2
    assert stats.sparsity == pytest.approx(0.75)
    assert stats.mean_active == 1.0
    assert stats.mean_activity == pytest.approx(1.5)
    assert stats.quiet_samples == 1
    assert stats.to_dict()["sparsity"] == pytest.approx(0.75)


def test_activity_reports_both_partitions(caplog):
    analysis = Activity()
    analysis.bind_logger(logging.getLogger("spikepipe.tests.activity"))

    with caplog.at_level("INFO", logger="spikepipe.tests.activity"):
        drive(analysis, [("a", one_hot(0)), ("b", one_hot(1))], [("a", torch.zeros(1, 4, 1, 1))])

    assert analysis.train.samples == 2
    assert analysis.test.quiet_samples == 1
    assert "[train]" in caplog.text and "[test]" in caplog.text


def test_svm_separates_one_hot_classes():
    train = [("left", one_hot(0)), ("right", one_hot(3))] * 5
    test = [("left", one_hot(0)), ("right", one_hot(3))]
    analysis = Svm()

    drive(analysis, train, test)

    assert analysis.accuracy == 1.0
    assert analysis.per_class == {"left": 1.0, "right": 1.0}


def test_svm_needs_two_classes(caplog):
    analysis = Svm()
    analysis.bind_logger(logging.getLogger("spikepipe.tests.svm"))

    with caplog.at_level("WARNING", logger="spikepipe.tests.svm"):
        drive(analysis, [("only", one_hot(0))] * 3, [("only", one_hot(0))])

    assert analysis.model is None
    assert analysis.accuracy is None
    assert "at least 2 classes" in caplog.text
