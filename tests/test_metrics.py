import math

import pytest

from aflow import metrics
from aflow.metrics import CounterVec, HistogramVec


def test_counter_counts_each_label_combination_separately():
    counter = CounterVec("test_total", "help", ("a", "b"))
    counter.inc("x", "y")
    counter.inc("x", "y")
    counter.inc("x", "z")
    assert counter.value("x", "y") == 2
    assert counter.value("x", "z") == 1
    assert counter.value("q", "q") == 0


def test_counter_rejects_wrong_label_count():
    counter = CounterVec("test_total", "help", ("a", "b"))
    with pytest.raises(ValueError):
        counter.inc("only-one")
    with pytest.raises(ValueError):
        counter.value("x", "y", "z")


def test_counter_rejects_non_string_labels():
    counter = CounterVec("test_total", "help", ("a",))
    with pytest.raises(TypeError):
        counter.inc(3)


def test_histogram_buckets_are_cumulative_and_inclusive():
    histogram = HistogramVec("test_seconds", "help", ("k",), (1.0, 5.0))
    histogram.observe(("a",), 0.5)
    histogram.observe(("a",), 1.0)
    histogram.observe(("a",), 3)
    histogram.observe(("a",), 7)
    assert histogram.count("a") == 4
    assert histogram.bucket_counts("a") == ((1.0, 2), (5.0, 3), (math.inf, 4))


def test_histogram_last_cumulative_count_equals_total():
    histogram = HistogramVec("test_seconds", "help", ("k",))
    for value in (0.001, 0.2, 11, 0.07):
        histogram.observe(("b",), value)
    pairs = histogram.bucket_counts("b")
    assert pairs[-1] == (math.inf, histogram.count("b"))
    cumulative = [count for _, count in pairs]
    assert cumulative == sorted(cumulative)


def test_histogram_unobserved_series_is_empty():
    histogram = HistogramVec("test_seconds", "help", ("k",), (1.0, 2.0))
    assert histogram.count("none") == 0
    assert histogram.bucket_counts("none") == ((1.0, 0), (2.0, 0), (math.inf, 0))


def test_histogram_accepts_single_string_label():
    histogram = HistogramVec("test_seconds", "help", ("k",), (1.0,))
    histogram.observe("solo", 0.5)
    assert histogram.count("solo") == 1


def test_histogram_rejects_unsorted_buckets():
    with pytest.raises(ValueError):
        HistogramVec("test_seconds", "help", ("k",), (5.0, 1.0))


def test_module_metrics_use_documented_buckets():
    execution = metrics.EXECUTION_DURATION.bucket_counts("bucket-probe")
    node = metrics.NODE_EXECUTION_DURATION.bucket_counts("bucket-probe")
    http = metrics.HTTP_REQUEST_DURATION.bucket_counts("GET", "/bucket-probe")
    assert tuple(bound for bound, _ in execution) == (
        0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60, 120, math.inf,
    )
    assert tuple(bound for bound, _ in node) == (
        0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, math.inf,
    )
    assert tuple(bound for bound, _ in http) == tuple(metrics.DEFAULT_BUCKETS) + (math.inf,)
    assert all(count == 0 for _, count in execution + node + http)


def test_module_metric_names_and_labels():
    before = metrics.NODE_EXECUTIONS_TOTAL.value("label-probe", "success")
    metrics.NODE_EXECUTIONS_TOTAL.inc("label-probe", "success")
    assert metrics.NODE_EXECUTIONS_TOTAL.value("label-probe", "success") == before + 1
    with pytest.raises(ValueError):
        metrics.HTTP_REQUESTS_TOTAL.inc("GET", "/label-probe")
    assert metrics.EXECUTIONS_TOTAL.name == "aflow_executions_total"
    assert metrics.NODE_EXECUTIONS_TOTAL.label_names == ("node_type", "status")
    assert metrics.HTTP_REQUESTS_TOTAL.label_names == ("method", "path", "status")
    assert metrics.QUEUE_JOBS_ENQUEUED.name == "aflow_queue_jobs_enqueued_total"