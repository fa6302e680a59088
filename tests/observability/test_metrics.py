import pytest
from unittest.mock import MagicMock, patch

from app.observability import metrics


@patch("app.observability.metrics.get_redis")
def test_record_capture_outcome(mock_get_redis):
    r = MagicMock()
    mock_get_redis.return_value = r

    metrics.record_capture_outcome("succeeded", 120)

    r.incr.assert_called_once_with(metrics.K_CAP_OK, 1)
    r.lpush.assert_called_once_with(metrics.K_CAP_LAT, 120)
    r.ltrim.assert_called_once_with(metrics.K_CAP_LAT, 0, metrics._MAX_SAMPLES - 1)


@patch("app.observability.metrics.get_redis")
def test_record_capture_outcome_rejects_unknown_kind(mock_get_redis):
    with pytest.raises(ValueError):
        metrics.record_capture_outcome("retried", 10)
    mock_get_redis.assert_not_called()


@patch("app.observability.metrics.get_redis")
def test_capture_snapshot(mock_get_redis):
    r = MagicMock()
    mock_get_redis.return_value = r
    counters = {
        metrics.K_CAP_ATT: "4",
        metrics.K_CAP_OK: "3",
        metrics.K_CAP_DECLINE: "1",
        metrics.K_CAP_ERR: None,
        metrics.K_CAP_MISSING: "2",
    }
    r.get.side_effect = lambda k: counters.get(k)
    r.lrange.return_value = ["100", "200", "300", "400", "garbage"]

    out = metrics.get_capture_snapshot()

    assert out["attempts"] == 4
    assert out["succeeded"] == 3
    assert out["declined"] == 1
    assert out["errors"] == 0
    assert out["missing_token"] == 2
    assert out["capture_success_rate"] == 75.0
    assert out["p50_capture_latency"] == 0.2
    assert out["p95_capture_latency"] == 0.4
    assert isinstance(out["target_capture_latency"], float)
    assert isinstance(out["snapshot_at"], int)


@patch("app.observability.metrics.get_redis")
def test_capture_snapshot_first_boot(mock_get_redis):
    r = MagicMock()
    mock_get_redis.return_value = r
    r.get.return_value = None
    r.lrange.return_value = []

    out = metrics.get_capture_snapshot()
    assert out["attempts"] == 0
    assert out["capture_success_rate"] == 0.0
    assert out["p95_capture_latency"] == 0.0
