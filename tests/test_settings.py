import pytest

from settings import SettingsError, load_settings

FULL = """
credentials:
  username: netops
  password: s3cret
tunnel:
  enabled: true
  host: jump.example.net
  port: 2222
  username: ops
  key_file: ~/.ssh/id_ed25519
scan:
  port: 8022
  timeout: 2.5
  max_addresses: 256
asymmetry:
  medium_threshold: 10
  high_threshold: 30
default_subnets:
  - 10.0.0.0/24
  - 10.0.1.0/24
"""


def write(tmp_path, text):
    path = tmp_path / "settings.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_defaults_without_file():
    settings = load_settings(None, environ={})

    assert settings.username == "admin"
    assert settings.password == ""
    assert settings.tunnel.enabled is False
    assert settings.scan.port == 22
    assert settings.scan.timeout == 5
    assert settings.scan.max_addresses == 1024
    assert settings.asymmetry.medium_threshold == 20
    assert settings.asymmetry.high_threshold == 50
    assert settings.default_subnets == []


def test_full_file(tmp_path):
    settings = load_settings(write(tmp_path, FULL), environ={})

    assert settings.username == "netops"
    assert settings.password == "s3cret"
    assert settings.tunnel.enabled is True
    assert settings.tunnel.host == "jump.example.net"
    assert settings.tunnel.port == 2222
    assert settings.tunnel.key_file == "~/.ssh/id_ed25519"
    assert settings.tunnel.password is None
    assert settings.scan.port == 8022
    assert settings.scan.timeout == 2.5
    assert settings.scan.max_addresses == 256
    assert settings.asymmetry.medium_threshold == 10
    assert settings.default_subnets == ["10.0.0.0/24", "10.0.1.0/24"]


def test_environment_overrides_credentials(tmp_path):
    settings = load_settings(
        write(tmp_path, FULL),
        environ={"ROUTEROS_USERNAME": "envuser", "ROUTEROS_PASSWORD": "envpass"},
    )

    credentials = settings.credentials().get_credentials()
    assert credentials.username == "envuser"
    assert credentials.password == "envpass"
    assert "envpass" not in repr(credentials)


def test_max_addresses_may_sit_at_the_ceiling(tmp_path):
    settings = load_settings(write(tmp_path, "scan:\n  max_addresses: 1024\n"), environ={})
    assert settings.scan.max_addresses == 1024


def test_empty_file_uses_defaults(tmp_path):
    assert load_settings(write(tmp_path, ""), environ={}).username == "admin"


def test_missing_file(tmp_path):
    with pytest.raises(SettingsError):
        load_settings(str(tmp_path / "nope.yaml"))


@pytest.mark.parametrize("text", [
    "credentials: [unclosed",
    "- just\n- a list\n",
    "scan: 5\n",
    "scan:\n  timeout: soon\n",
    "scan:\n  port: 0\n",
    "scan:\n  max_addresses: 65536\n",
    "scan:\n  max_addresses: 1025\n",
    "tunnel:\n  enabled: true\n  username: ops\n",
    "tunnel:\n  enabled: true\n  host: jump\n",
    "asymmetry:\n  medium_threshold: 60\n  high_threshold: 50\n",
    "default_subnets: 10.0.0.0/24\n",
])
def test_invalid_settings(tmp_path, text):
    with pytest.raises(SettingsError):
        load_settings(write(tmp_path, text), environ={})
