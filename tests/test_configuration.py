"""
Tests for runtime configuration loading.
"""

import pytest
from omegaconf.errors import ConfigKeyError

from card_press_backend.configuration import load_config


class TestLoadConfig:
    """Tests for load_config."""

    def test_environment_values_are_resolved(self, config):
        assert config.auth.client_id == "test-client-id"
        assert config.storage.bucket == "test-bucket"
        assert config.editing.export_url == f"{config.editing.api_base}/export"

    def test_packaged_defaults(self, config):
        assert config.editing.poll_interval_seconds == 5
        assert config.auth.token_lifetime_seconds - config.auth.safety_margin_seconds == 3300
        assert config.layers.dl_number == "DL NUMBER"
        assert config.server.download_filename == "generated_document.pdf"

    def test_overrides_are_merged(self):
        merged = load_config({"editing": {"poll_timeout_seconds": 30, "variant": "operations"}})
        assert merged.editing.poll_timeout_seconds == 30
        assert merged.editing.variant == "operations"
        assert merged.editing.poll_interval_seconds == 5

    def test_unknown_override_key_is_rejected(self):
        with pytest.raises(ConfigKeyError):
            load_config({"editing": {"no_such_setting": 1}})
