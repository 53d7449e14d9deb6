"""
Unit tests for the solved.ac HTTP client (retry policy, parsing, latency reporting).

The requests session is mocked; no network access.
"""
from unittest.mock import MagicMock

import pytest
import requests

from leaderboard.api import (
    InvalidHandleError,
    RateLimitedError,
    ResponseParseError,
    SolvedACClient,
    SolvedACError,
    UpstreamStatusError,
)
from leaderboard.cache import DataCategory
from leaderboard.schemas import Organization, Top100Response, UserInfo


# =============================================================================
# Test Fixtures (Mock Data)
# =============================================================================

USER_PAYLOAD = {
    "handle": "koosaga",
    "bio": "",
    "rating": 3400,
    "tier": 31,
    "class": 10,
    "classDecoration": "gold",
    "profileImageUrl": None,
    "solvedCount": 5000,
    "verified": True,
    "rank": 1,
}

TOP100_PAYLOAD = {
    "count": 2,
    "items": [
        {"problemId": 1000, "level": 1, "titleKo": "A+B", "acceptedUserCount": 300000, "averageTries": 2.5},
        {"problemId": 13977, "level": 30, "titleKo": "Hard", "acceptedUserCount": 12, "averageTries": 9.1},
    ],
}

ORGANIZATIONS_PAYLOAD = [
    {
        "organizationId": 194,
        "name": "Soongsil University",
        "type": "university",
        "rating": 2900,
        "userCount": 900,
        "voteCount": 10,
        "solvedCount": 20000,
        "color": "#000000",
    }
]


def make_response(status_code=200, payload=None, json_error=False):
    response = MagicMock()
    response.status_code = status_code
    if json_error:
        response.json.side_effect = ValueError("not json")
    else:
        response.json.return_value = payload
    return response


@pytest.fixture
def session():
    mock = MagicMock(spec=requests.Session)
    mock.headers = {}
    return mock


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def latencies():
    return []


@pytest.fixture
def client(session, sleeps, latencies):
    return SolvedACClient(
        base_url="https://solved.ac/api/v3/",
        timeout=7.0,
        max_retries=3,
        retry_delay=1.0,
        rate_limit_multiplier=2,
        session=session,
        on_response_time=latencies.append,
        sleep=sleeps.append,
    )


# =============================================================================
# Parsing
# =============================================================================

def test_get_user_info_parses_camel_case(client, session, latencies):
    session.get.return_value = make_response(payload=USER_PAYLOAD)

    info = client.get_user_info("koosaga")

    assert isinstance(info, UserInfo)
    assert info.handle == "koosaga"
    assert info.class_ == 10
    assert info.solved_count == 5000
    session.get.assert_called_once_with(
        "https://solved.ac/api/v3/user/show",
        params={"handle": "koosaga"},
        timeout=7.0,
    )
    assert len(latencies) == 1


def test_get_user_top100(client, session):
    session.get.return_value = make_response(payload=TOP100_PAYLOAD)

    top100 = client.get_user_top100("koosaga")

    assert isinstance(top100, Top100Response)
    assert top100.count == 2
    assert top100.items[1].problem_id == 13977
    assert session.get.call_args[0][0].endswith("/user/top_100")


def test_get_user_organizations(client, session):
    session.get.return_value = make_response(payload=ORGANIZATIONS_PAYLOAD)

    orgs = client.get_user_organizations("koosaga")

    assert len(orgs) == 1
    assert isinstance(orgs[0], Organization)
    assert orgs[0].organization_id == 194


def test_fetch_dispatches_by_category(client, session):
    session.get.return_value = make_response(payload={"countryCode": "kr", "nameNative": "구사과"})

    additional = client.fetch(DataCategory.USER_ADDITIONAL, "koosaga")

    assert additional.country_code == "kr"
    assert additional.name_native == "구사과"
    assert session.get.call_args[0][0].endswith("/user/additional_info")


def test_invalid_json_raises_parse_error(client, session):
    session.get.return_value = make_response(json_error=True)

    with pytest.raises(ResponseParseError):
        client.get_user_info("koosaga")
    assert session.get.call_count == 1


def test_wrong_shape_raises_parse_error(client, session):
    session.get.return_value = make_response(payload={"rating": 10})  # no handle
    with pytest.raises(ResponseParseError):
        client.get_user_info("koosaga")

    session.get.return_value = make_response(payload={"not": "a list"})
    with pytest.raises(ResponseParseError):
        client.get_user_organizations("koosaga")


# =============================================================================
# Validation and retries
# =============================================================================

@pytest.mark.parametrize("handle", ["", "ab", "1abc", "bad-handle", "a" * 21, "end_", "dou__ble"])
def test_invalid_handle_sends_no_request(client, session, handle):
    with pytest.raises(InvalidHandleError):
        client.get_user_info(handle)
    session.get.assert_not_called()


def test_invalid_handle_is_value_error(client):
    with pytest.raises(ValueError):
        client.get_user_top100("!!")


def test_server_error_is_retried_with_linear_backoff(client, session, sleeps):
    session.get.side_effect = [
        make_response(status_code=503),
        make_response(status_code=500),
        make_response(payload=USER_PAYLOAD),
    ]

    info = client.get_user_info("koosaga")

    assert info.handle == "koosaga"
    assert session.get.call_count == 3
    assert sleeps == [1.0, 2.0]


def test_client_error_is_not_retried(client, session, sleeps):
    session.get.return_value = make_response(status_code=404)

    with pytest.raises(UpstreamStatusError) as exc_info:
        client.get_user_info("koosaga")

    assert exc_info.value.status_code == 404
    assert session.get.call_count == 1
    assert sleeps == []


def test_rate_limit_backs_off_and_gives_up(client, session, sleeps):
    session.get.return_value = make_response(status_code=429)

    with pytest.raises(RateLimitedError):
        client.get_user_info("koosaga")

    assert session.get.call_count == 3
    # 429 pause (2.0) after each attempt, linear backoff before retries
    assert sleeps == [2.0, 1.0, 2.0, 2.0, 2.0]


def test_network_errors_report_full_timeout(client, session, latencies):
    session.get.side_effect = requests.ConnectionError("connection refused")

    with pytest.raises(SolvedACError):
        client.get_user_info("koosaga")

    assert session.get.call_count == 3
    assert latencies == [7.0, 7.0, 7.0]


def test_recovers_after_timeout(client, session, latencies):
    session.get.side_effect = [
        requests.Timeout("read timed out"),
        make_response(payload=USER_PAYLOAD),
    ]

    assert client.get_user_info("koosaga").rating == 3400
    assert latencies[0] == 7.0
    assert len(latencies) == 2


def test_max_retries_must_be_positive(session):
    with pytest.raises(ValueError):
        SolvedACClient(session=session, max_retries=0)
