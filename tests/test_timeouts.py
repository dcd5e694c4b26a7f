from datetime import timedelta

import pytest

from tfworkspace.timeouts import OperationTimeouts, format_duration, insert_timeouts_meta

MINUTE = timedelta(minutes=1)

ALL = OperationTimeouts(create=MINUTE, update=2 * MINUTE, read=3 * MINUTE, delete=4 * MINUTE)


@pytest.mark.parametrize(
    "to, expected",
    [
        (OperationTimeouts(), {}),
        (OperationTimeouts(read=3 * MINUTE), {"read": "3m0s"}),
        (ALL, {"create": "1m0s", "update": "2m0s", "read": "3m0s", "delete": "4m0s"}),
    ],
)
def test_as_parameter(to, expected):
    assert to.as_parameter() == expected


@pytest.mark.parametrize(
    "to, expected",
    [
        (OperationTimeouts(), {}),
        (OperationTimeouts(read=3 * MINUTE), {"read": 180000000000}),
        (
            ALL,
            {
                "create": 60000000000,
                "update": 120000000000,
                "read": 180000000000,
                "delete": 240000000000,
            },
        ),
    ],
)
def test_as_metadata(to, expected):
    assert to.as_metadata() == expected


@pytest.mark.parametrize(
    "raw, to, expected",
    [
        (None, OperationTimeouts(), None),
        (
            None,
            OperationTimeouts(read=2 * MINUTE),
            b'{"e2bfb730-ecaa-11e6-8f88-34363bc7c4c0":{"read":120000000000}}',
        ),
        (
            b"{}",
            OperationTimeouts(read=2 * MINUTE),
            b'{"e2bfb730-ecaa-11e6-8f88-34363bc7c4c0":{"read":120000000000}}',
        ),
        (
            b'{"some-key":"some-value"}',
            OperationTimeouts(read=2 * MINUTE),
            b'{"e2bfb730-ecaa-11e6-8f88-34363bc7c4c0":{"read":120000000000},"some-key":"some-value"}',
        ),
        (
            b'{"some-key":"some-value"}',
            OperationTimeouts(),
            b'{"some-key":"some-value"}',
        ),
        (
            b'{"e2bfb730-ecaa-11e6-8f88-34363bc7c4c0":{"create":240000000000,"read":120000000000},"some-key":"some-value"}',
            OperationTimeouts(read=MINUTE),
            b'{"e2bfb730-ecaa-11e6-8f88-34363bc7c4c0":{"create":240000000000,"read":60000000000},"some-key":"some-value"}',
        ),
    ],
)
def test_insert_timeouts_meta(raw, to, expected):
    assert insert_timeouts_meta(raw, to) == expected


def test_insert_timeouts_meta_malformed():
    with pytest.raises(ValueError, match="cannot parse existing metadata"):
        insert_timeouts_meta(b"{malformed}", OperationTimeouts(read=2 * MINUTE))


@pytest.mark.parametrize(
    "delta, expected",
    [
        (timedelta(), "0s"),
        (timedelta(seconds=30), "30s"),
        (2 * MINUTE, "2m0s"),
        (timedelta(hours=1), "1h0m0s"),
        (timedelta(seconds=1, milliseconds=500), "1.5s"),
        (timedelta(milliseconds=1), "1ms"),
        (timedelta(microseconds=1500), "1.5ms"),
        (timedelta(microseconds=20), "20µs"),
        (timedelta(hours=26, minutes=3, seconds=4), "26h3m4s"),
        (-timedelta(seconds=90), "-1m30s"),
    ],
)
def test_format_duration(delta, expected):
    assert format_duration(delta) == expected