from trafficsync.common.metrics import MetricsCollector

def test_metrics_aggregate():
    collector = MetricsCollector()
    collector.record_tick(2.0)
    collector.record_tick(4.0)
    collector.record_event("admit")
    collector.record_event("admit")
    collector.record_event("transition")
    collector.record_callback_failure()

    metrics = collector.get_metrics()

    assert metrics.ticks == 2
    assert metrics.avg_tick_time_ms == 3.0
    assert metrics.callback_failures == 1
    assert metrics.events == {"admit": 2, "transition": 1}
    assert metrics.to_dict()["events"] == {"admit": 2, "transition": 1}

def test_empty_metrics():
    metrics = MetricsCollector().get_metrics()
    assert metrics.ticks == 0
    assert metrics.avg_tick_time_ms == 0.0
    assert metrics.uptime_seconds >= 0
