"""
Tests for rate-limited logging.
"""
from unittest.mock import MagicMock, patch

from pqwallet_sdk._rate_limited_log import rate_limited_log, reset_rate_limit_cache


class TestRateLimitedLog:

    def test_repeated_message_is_suppressed(self):
        mock_logger = MagicMock()

        assert rate_limited_log("relay down", logger_instance=mock_logger) is True
        assert rate_limited_log("relay down", logger_instance=mock_logger) is False

        mock_logger.warning.assert_called_once_with("relay down")

    def test_levels_are_tracked_separately(self):
        mock_logger = MagicMock()

        rate_limited_log("relay down", level="warning", logger_instance=mock_logger)
        rate_limited_log("relay down", level="error", logger_instance=mock_logger)

        mock_logger.warning.assert_called_once_with("relay down")
        mock_logger.error.assert_called_once_with("relay down")

    def test_distinct_messages_both_logged(self):
        mock_logger = MagicMock()

        rate_limited_log("first", logger_instance=mock_logger)
        rate_limited_log("second", logger_instance=mock_logger)

        assert mock_logger.warning.call_count == 2

    def test_unknown_level_falls_back_to_warning(self):
        mock_logger = MagicMock(spec=["warning"])
        rate_limited_log("odd level", level="verbose", logger_instance=mock_logger)
        mock_logger.warning.assert_called_once_with("odd level")

    def test_reset_allows_message_again(self):
        mock_logger = MagicMock()
        rate_limited_log("again", logger_instance=mock_logger)
        reset_rate_limit_cache()
        rate_limited_log("again", logger_instance=mock_logger)
        assert mock_logger.warning.call_count == 2

    def test_cache_is_used_under_lock(self):
        mock_cache = {}
        mock_lock = MagicMock()
        mock_logger = MagicMock()

        with patch("pqwallet_sdk._rate_limited_log._log_cache", mock_cache), \
             patch("pqwallet_sdk._rate_limited_log._log_cache_lock", mock_lock), \
             patch("pqwallet_sdk._rate_limited_log.logger", mock_logger):
            rate_limited_log("cached", level="info")

        mock_logger.info.assert_called_once_with("cached")
        mock_lock.__enter__.assert_called()
        assert "info:cached" in mock_cache

    def test_expired_entry_logs_again(self):
        mock_logger = MagicMock()
        mock_cache = {"warning:stale": True}

        with patch("pqwallet_sdk._rate_limited_log._log_cache", mock_cache):
            rate_limited_log("stale", logger_instance=mock_logger)
            mock_logger.warning.assert_not_called()
            # TTLCache drops the key once its hour is up
            mock_cache.clear()
            rate_limited_log("stale", logger_instance=mock_logger)

        mock_logger.warning.assert_called_once_with("stale")
