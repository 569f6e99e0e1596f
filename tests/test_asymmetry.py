import pytest

from conftest import device, nbr
from engine.asymmetry import AsymmetryDetector


def pair(cost_ab, cost_ba, **names):
    a = device("a", "10.0.0.1", [nbr("10.0.0.2", cost_ab)], identity=names.get("identity_a"))
    b = device("b", "10.0.0.2", [nbr("10.0.0.1", cost_ba)], identity=names.get("identity_b"))
    return [a, b]


@pytest.mark.parametrize("cost_ab, cost_ba, difference, severity", [
    (10, 11, 1, "low"),
    (10, 30, 20, "low"),
    (10, 31, 21, "medium"),
    (10, 60, 50, "medium"),
    (10, 61, 51, "high"),
    (100, 10, 90, "high"),
])
def test_severity_boundaries(cost_ab, cost_ba, difference, severity):
    [route] = AsymmetryDetector().detect(pair(cost_ab, cost_ba))

    assert route.difference == difference
    assert route.severity == severity


def test_equal_costs_produce_no_route():
    assert AsymmetryDetector().detect(pair(10, 10)) == []


def test_one_sided_neighbor_produces_no_route():
    a = device("a", "10.0.0.1", [nbr("10.0.0.2", 10)])
    b = device("b", "10.0.0.2", [nbr("10.0.0.99", 40)])

    assert AsymmetryDetector().detect([a, b]) == []


def test_pair_reported_once():
    routes = AsymmetryDetector().detect(pair(10, 35, identity_a="R1", identity_b="R2"))

    [route] = routes
    assert route.router1 == "R1"
    assert route.router2 == "R2"
    assert route.router1_ip == "10.0.0.1"
    assert route.router2_ip == "10.0.0.2"
    assert route.cost1to2 == 10
    assert route.cost2to1 == 35
    assert route.difference == 25
    assert route.severity == "medium"


def test_display_name_falls_back_to_hostname_then_ip():
    a = device("a", "10.0.0.1", [nbr("10.0.0.2", 1)], hostname="edge-a")
    b = device("b", "10.0.0.2", [nbr("10.0.0.1", 2)])

    [route] = AsymmetryDetector().detect([a, b])

    assert route.router1 == "edge-a"
    assert route.router2 == "10.0.0.2"


def test_thresholds_are_configurable():
    detector = AsymmetryDetector(medium_threshold=5, high_threshold=10)

    assert detector.classify(5) == "low"
    assert detector.classify(6) == "medium"
    assert detector.classify(10) == "medium"
    assert detector.classify(11) == "high"


def test_thresholds_must_be_ordered():
    with pytest.raises(ValueError):
        AsymmetryDetector(medium_threshold=50, high_threshold=20)


def test_route_serialization():
    [route] = AsymmetryDetector().detect(pair(10, 35))
    data = route.to_dict()
    assert data["cost1to2"] == 10
    assert data["severity"] == "medium"
