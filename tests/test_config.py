"""Tests for personalens.config module."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from personalens.config import Settings


class TestSettings:
    def test_default_values(self):
        s = Settings()
        assert s.openai_api_key == ""
        assert s.proxy_url == "http://localhost:8787/analyze"
        assert s.proxy_anon_key == ""
        assert s.supabase_url == ""
        assert s.identities_file == ""
        assert s.identity_cache_ttl == 60.0
        assert s.identity_miss_refresh_interval == 5.0
        assert s.message_timeout == 10.0
        assert s.proxy_timeout == 60.0
        assert s.page_timeout == 30.0
        assert s.settle_delay == 0.1

    def test_frozen_dataclass(self):
        s = Settings()
        with pytest.raises(AttributeError):
            s.openai_api_key = "new-key"  # type: ignore[misc]

    def test_from_env_reads_env_vars(self):
        env = {
            "OPENAI_API_KEY": "my-openai-key",
            "PERSONALENS_PROXY_URL": "https://proxy.example.com/analyze",
            "PERSONALENS_ANON_KEY": "anon",
            "SUPABASE_URL": "https://project.supabase.co",
            "SUPABASE_SERVICE_ROLE_KEY": "service",
            "PERSONALENS_IDENTITIES_FILE": "/etc/personalens/ids.json",
            "PERSONALENS_STATE_FILE": "/tmp/state.json",
            "MESSAGE_TIMEOUT": "3",
            "PROXY_TIMEOUT": "90.5",
            "PAGE_TIMEOUT": "12",
            "IDENTITY_CACHE_TTL": "5",
            "IDENTITY_MISS_REFRESH_INTERVAL": "0.5",
        }
        with patch.dict("os.environ", env, clear=False), \
             patch("personalens.config.load_dotenv"):
            s = Settings.from_env()
            assert s.openai_api_key == "my-openai-key"
            assert s.proxy_url == "https://proxy.example.com/analyze"
            assert s.proxy_anon_key == "anon"
            assert s.supabase_url == "https://project.supabase.co"
            assert s.supabase_service_key == "service"
            assert s.identities_file == "/etc/personalens/ids.json"
            assert s.state_file == "/tmp/state.json"
            assert s.message_timeout == 3.0
            assert s.proxy_timeout == 90.5
            assert s.page_timeout == 12.0
            assert s.identity_cache_ttl == 5.0
            assert s.identity_miss_refresh_interval == 0.5

    def test_from_env_rejects_bad_number(self):
        with patch.dict("os.environ", {"MESSAGE_TIMEOUT": "soon"}, clear=False), \
             patch("personalens.config.load_dotenv"), \
             pytest.raises(ValueError, match="MESSAGE_TIMEOUT must be a number"):
            Settings.from_env()
