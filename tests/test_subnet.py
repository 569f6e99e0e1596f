import pytest

from subnet import (
    MAX_SCAN_ADDRESSES,
    InvalidSubnet,
    SubnetError,
    SubnetTooLarge,
    enumerate_hosts,
    parse_subnet,
)


def test_slash_30_yields_two_usable_hosts():
    assert enumerate_hosts("10.0.0.0/30") == ["10.0.0.1", "10.0.0.2"]


def test_hosts_are_unique_and_ordered():
    hosts = enumerate_hosts("192.168.1.0/24")
    assert len(hosts) == 254
    assert len(set(hosts)) == 254
    assert hosts[0] == "192.168.1.1"
    assert hosts[-1] == "192.168.1.254"
    assert hosts == enumerate_hosts("192.168.1.0/24")


def test_slash_31_and_32_keep_all_addresses():
    assert enumerate_hosts("10.0.0.0/31") == ["10.0.0.0", "10.0.0.1"]
    assert enumerate_hosts("10.0.0.7/32") == ["10.0.0.7"]


def test_host_bits_are_ignored():
    assert str(parse_subnet("10.0.0.5/24")) == "10.0.0.0/24"


def test_slash_22_is_the_largest_default_subnet():
    assert MAX_SCAN_ADDRESSES == 1024
    assert parse_subnet("10.0.0.0/22").num_addresses == 1024
    assert len(enumerate_hosts("10.0.0.0/22")) == 1022
    with pytest.raises(SubnetTooLarge):
        parse_subnet("10.0.0.0/21")


def test_ceiling_is_inclusive():
    assert parse_subnet("10.0.0.0/24", max_addresses=256).num_addresses == 256
    with pytest.raises(SubnetTooLarge):
        parse_subnet("10.0.0.0/24", max_addresses=255)


def test_max_addresses_cannot_raise_the_ceiling():
    with pytest.raises(SubnetTooLarge):
        parse_subnet("10.0.0.0/16", max_addresses=65536)
    with pytest.raises(SubnetTooLarge):
        enumerate_hosts("10.0.0.0/21", max_addresses=2048)


@pytest.mark.parametrize("cidr", [
    "",
    "10.0.0.0",
    "10.0.0/24",
    "300.0.0.0/24",
    "10.0.0.0/33",
    "not-a-subnet/24",
    "2001:db8::/120",
    None,
])
def test_invalid_subnets_are_rejected(cidr):
    with pytest.raises(InvalidSubnet):
        parse_subnet(cidr)


def test_subnet_errors_are_value_errors():
    assert issubclass(InvalidSubnet, SubnetError)
    assert issubclass(SubnetTooLarge, SubnetError)
    assert issubclass(SubnetError, ValueError)
