from unittest.mock import MagicMock, patch

import pytest
import requests

from nginx_deployer.aws.regions import probe_latency, select_region_by_latency
from nginx_deployer.exceptions import PreconditionFailure


def test_fastest_reachable_region_wins():
    latencies = {"us-east-1": 0.120, "eu-west-1": 0.045, "ap-south-1": None}

    assert select_region_by_latency(latencies, probe=latencies.get) == "eu-west-1"


def test_ties_keep_candidate_order():
    latencies = {"us-west-2": 0.05, "us-east-1": 0.05}

    assert select_region_by_latency(["us-west-2", "us-east-1"], probe=latencies.get) == "us-west-2"


def test_no_reachable_region_is_a_precondition_failure():
    with pytest.raises(PreconditionFailure):
        select_region_by_latency(["us-east-1"], probe=lambda region: None)


def test_probe_returns_none_when_unreachable():
    with patch("nginx_deployer.aws.regions.requests.Session") as session_cls:
        session = session_cls.return_value.__enter__.return_value
        session.get.side_effect = requests.ConnectionError("no route")

        assert probe_latency("us-east-1", samples=2) is None
        assert session.get.call_count == 2
        assert session.get.call_args[0][0] == "https://dynamodb.us-east-1.amazonaws.com/ping"


def test_probe_returns_best_sample():
    with patch("nginx_deployer.aws.regions.requests.Session") as session_cls, \
            patch("nginx_deployer.aws.regions.time.perf_counter", side_effect=[0.0, 0.3, 1.0, 1.1]):
        session = session_cls.return_value.__enter__.return_value
        session.get.return_value = MagicMock(status_code=200)

        assert probe_latency("eu-west-1", samples=2) == pytest.approx(0.1)
