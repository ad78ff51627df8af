"""
Tests for command payloads, outcome events and convergence matching.
"""

from datetime import datetime, timezone

import pytest

from bgh_bridge.models.command import (
    CommandCompleted,
    CommandFailed,
    CommandJob,
    CommandPayload,
    EnqueueResult,
    matches_expected,
)
from bgh_bridge.utils.errors import UpstreamError


def test_matches_when_mode_and_rounded_target_agree(snapshot):
    payload = CommandPayload(mode="cool", target_temperature=21)

    assert matches_expected(snapshot(mode_id=1, target_temperature=21.0), payload)
    assert matches_expected(snapshot(mode_id=1, target_temperature=20.6), payload)


def test_mode_mismatch(snapshot):
    payload = CommandPayload(mode="heat", target_temperature=21)
    assert not matches_expected(snapshot(mode_id=1, target_temperature=21.0), payload)


def test_missing_target_never_matches(snapshot):
    payload = CommandPayload(mode="cool", target_temperature=21)
    assert not matches_expected(snapshot(mode_id=1, target_temperature=None), payload)


def test_fan_only_compared_when_requested(snapshot):
    device = snapshot(mode_id=1, fan_speed=1, target_temperature=21.0)

    assert matches_expected(device, CommandPayload(mode="cool", target_temperature=21))
    assert matches_expected(device, CommandPayload(mode="cool", target_temperature=21, fan="low"))
    assert not matches_expected(device, CommandPayload(mode="cool", target_temperature=21, fan="high"))


def test_unmapped_mode_does_not_block_match(snapshot):
    payload = CommandPayload(mode="mystery", target_temperature=21)
    assert matches_expected(snapshot(mode_id=3, target_temperature=21.0), payload)


@pytest.mark.parametrize("device_target, requested, expected", [
    (21.5, 22, True),
    (22.4, 22, True),
    (21.4, 22, False),
    (-0.5, 0, True),
])
def test_targets_are_rounded_half_up(snapshot, device_target, requested, expected):
    payload = CommandPayload(mode="cool", target_temperature=requested)
    assert matches_expected(snapshot(mode_id=1, target_temperature=device_target), payload) is expected


def make_job():
    return CommandJob(
        id="job-1",
        home_id=1,
        device_id=7,
        payload=CommandPayload(mode="cool", target_temperature=21),
        enqueued_at=datetime.now(timezone.utc),
    )


def test_enqueue_result_dict():
    assert EnqueueResult(job_id="abc", position=2).to_dict() == {"jobId": "abc", "position": 2}


def test_completed_event(snapshot):
    outcome = CommandCompleted(job=make_job(), device=snapshot(), attempts=2)

    assert outcome.status == "completed"
    assert outcome.event_name == "device-update"
    event = outcome.to_event()
    assert event["jobId"] == "job-1"
    assert event["attempts"] == 2
    assert event["device"]["deviceId"] == 7


def test_failed_event():
    outcome = CommandFailed(job=make_job(), error=UpstreamError("down", endpoint="x"))

    assert outcome.status == "failed"
    assert outcome.attempts == 0
    assert outcome.event_name == "command-error"
    assert outcome.to_event() == {"jobId": "job-1", "homeId": 1, "deviceId": 7, "message": "down"}


def test_failed_message_falls_back_to_error_type():
    outcome = CommandFailed(job=make_job(), error=RuntimeError())
    assert outcome.message == "RuntimeError"


@pytest.mark.parametrize("device_target, requested", [
    (float("inf"), 21),
    (float("nan"), 21),
    (21.0, float("nan")),
    (21.0, float("inf")),
])
def test_non_finite_targets_never_match(snapshot, device_target, requested):
    payload = CommandPayload(mode="cool", target_temperature=requested)
    assert matches_expected(snapshot(mode_id=1, target_temperature=device_target), payload) is False
