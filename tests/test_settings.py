"""Tests for history settings loading."""

import pytest

from graphtrail.manager import GraphHistoryManager
from graphtrail.settings import HistorySettings, load_settings

from conftest import RecordingCallbacks


def test_defaults_with_empty_env():
    settings = load_settings({})
    assert settings.max_history_size == 100
    assert settings.busy_policy == "queue"


def test_reads_env_values():
    settings = load_settings({"GRAPHTRAIL_MAX_HISTORY": " 25 ", "GRAPHTRAIL_BUSY_POLICY": "Reject"})
    assert settings.max_history_size == 25
    assert settings.busy_policy == "reject"


@pytest.mark.parametrize("raw", ["0", "none", "unbounded", ""])
def test_unbounded_values(raw):
    assert load_settings({"GRAPHTRAIL_MAX_HISTORY": raw}).max_history_size is None


def test_non_integer_raises():
    with pytest.raises(ValueError, match="GRAPHTRAIL_MAX_HISTORY"):
        load_settings({"GRAPHTRAIL_MAX_HISTORY": "lots"})


def test_negative_size_raises():
    with pytest.raises(ValueError, match="Invalid history settings"):
        load_settings({"GRAPHTRAIL_MAX_HISTORY": "-3"})


def test_unknown_policy_raises():
    with pytest.raises(ValueError, match="Invalid history settings"):
        load_settings({"GRAPHTRAIL_BUSY_POLICY": "drop"})


@pytest.mark.asyncio
async def test_manager_from_settings_unbounded():
    history = GraphHistoryManager.from_settings(
        RecordingCallbacks(), HistorySettings(max_history_size=None)
    )
    for i in range(150):
        await history.record_node_position_change({"a": (i, 0)}, {"a": (i + 1, 0)})

    assert history.total_size == 150
