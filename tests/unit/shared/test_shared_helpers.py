import logging
from unittest.mock import patch

import pytest
from prometheus_client import REGISTRY, Counter, Histogram

from shared.config import BaseServiceConfig
from shared.logging import logger as shared_logger
from shared.metrics import get_counter, get_histogram


class TestMetrics:
    def test_counter_is_prefixed_with_service(self):
        counter = get_counter("helper_test_events_total", "doc", "unitsvc")
        assert isinstance(counter, Counter)
        counter.inc()
        assert REGISTRY.get_sample_value("unitsvc_helper_test_events_total") == 1.0

    def test_existing_prefix_is_not_doubled(self):
        counter = get_counter("unitsvc2_pages_total", "doc", "unitsvc2")
        counter.inc(2)
        assert REGISTRY.get_sample_value("unitsvc2_pages_total") == 2.0

    def test_histogram_with_buckets_and_labels(self):
        hist = get_histogram(
            "helper_duration_seconds", "doc", "unitsvc", buckets=[1, 5], labelnames=("kind",)
        )
        assert isinstance(hist, Histogram)
        hist.labels(kind="x").observe(2)

    def test_invalid_name(self):
        with pytest.raises(ValueError):
            get_counter("Bad-Name", "doc")


class TestSharedLogger:
    def test_get_logger_configures_once(self):
        with patch.object(shared_logger, "_configured", False), patch(
            "logging.basicConfig"
        ) as basic:
            shared_logger.get_logger("a")
            shared_logger.get_logger("b")
            assert shared_logger.is_configured()
        basic.assert_called_once()

    def test_skip_auto_configure(self):
        with patch.object(shared_logger, "_configured", False), patch(
            "logging.basicConfig"
        ) as basic:
            logger = shared_logger.get_logger("c", auto_configure=False)
        basic.assert_not_called()
        assert isinstance(logger, logging.Logger)

    def test_mark_configured(self):
        with patch.object(shared_logger, "_configured", False):
            shared_logger.mark_configured()
            assert shared_logger.is_configured()


def test_base_service_config_defaults():
    config = BaseServiceConfig()
    assert config.aws_region == "us-east-1"
    assert config.aws_max_attempts == 3
    assert "secret" in config.app_log_redaction_patterns
