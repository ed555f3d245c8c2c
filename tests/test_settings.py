"""Tests for the settings groups."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from mergegate.config.settings import (
    GateSettings,
    GitHubSettings,
    JenkinsSettings,
    LogSettings,
    split_csv,
)


class TestSplitCsv:
    def test_order_kept_blanks_and_duplicates_dropped(self) -> None:
        assert split_csv(" b, a,,b , c ") == ("b", "a", "c")

    def test_empty(self) -> None:
        assert split_csv("") == ()


class TestJenkinsSettings:
    def test_job_names_from_env(self, monkeypatch) -> None:
        monkeypatch.setenv("JENKINS_JOBS", "kubernetes-build,kubernetes-e2e-gce")
        monkeypatch.setenv("JENKINS_HOST", "http://jenkins.test/")
        s = JenkinsSettings()
        assert s.job_names == ("kubernetes-build", "kubernetes-e2e-gce")
        assert s.host == "http://jenkins.test"

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            JenkinsSettings(timeout_s=0)


class TestGateSettings:
    def test_defaults(self, monkeypatch) -> None:
        for name in ("GATE_BYPASS_LABEL", "GATE_POLL_INTERVAL_S", "GATE_MAX_ATTEMPTS",
                     "GATE_DEADLINE_S", "GATE_WHITELIST"):
            monkeypatch.delenv(name, raising=False)
        s = GateSettings()
        assert s.bypass_label == ""
        assert s.poll_interval_s == 30.0
        assert s.max_attempts is None
        assert s.deadline_s is None
        assert s.whitelist_users == ()

    def test_whitelist_users(self) -> None:
        assert GateSettings(whitelist="alice, bob").whitelist_users == ("alice", "bob")

    def test_non_positive_interval_rejected(self) -> None:
        with pytest.raises(ValidationError):
            GateSettings(poll_interval_s=0)


class TestGitHubSettings:
    def test_api_url_trailing_slash_stripped(self) -> None:
        assert GitHubSettings(api_url="https://ghe.test/api/v3/").api_url == (
            "https://ghe.test/api/v3"
        )


class TestLogSettings:
    def test_level_normalized(self) -> None:
        assert LogSettings(level="debug").level == "DEBUG"

    def test_invalid_level_rejected(self) -> None:
        with pytest.raises(ValidationError, match="LOG_LEVEL must be one of"):
            LogSettings(level="chatty")
