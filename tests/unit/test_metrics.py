"""Test metrics collector."""

import threading

from l2a_ondemand.shared.metrics import MetricsCollector


def test_metrics_counter():
    """Test counter functionality."""
    metrics = MetricsCollector()

    metrics.increment_counter('wps_requests')
    metrics.increment_counter('wps_requests')
    metrics.increment_counter('wps_requests', amount=3)

    assert metrics.get_counter('wps_requests') == 5
    assert metrics.get_counter('never_incremented') == 0


def test_metrics_counter_thread_safe():
    metrics = MetricsCollector()

    def work():
        for _ in range(1000):
            metrics.increment_counter('downloads_started')

    threads = [threading.Thread(target=work) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert metrics.get_counter('downloads_started') == 8000


def test_metrics_record():
    metrics = MetricsCollector()

    metrics.record_metric('download_duration', 1.5)

    assert metrics.get_metric('download_duration') == [1.5]
    assert metrics.get_metric('never_recorded') == []


def test_metrics_summary():
    """Test summary generation."""
    metrics = MetricsCollector()

    metrics.record_metric('download_duration', 30.0)
    metrics.record_metric('download_duration', 29.5)
    metrics.record_metric('download_duration', 30.5)
    metrics.increment_counter('downloads_completed')

    summary = metrics.get_summary()

    assert summary['metrics']['download_duration']['count'] == 3
    assert summary['metrics']['download_duration']['avg'] == 30.0
    assert summary['metrics']['download_duration']['min'] == 29.5
    assert summary['metrics']['download_duration']['max'] == 30.5
    assert summary['counters'] == {'downloads_completed': 1}
    assert summary['total_elapsed'] >= 0
