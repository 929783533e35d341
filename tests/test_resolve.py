import socket

import pytest

from readygate.errors import MisconfigurationError
from readygate.resolve import HostResolver, is_ip_literal, parse_hosts_file
from readygate.targets import TcpTarget

HOSTS = """
# static entries
127.0.0.1   localhost
10.0.0.5    db db.internal   # primary
10.0.0.9    db
not-an-ip   broken
"""


def test_parse_hosts_file_first_entry_wins():
    mapping = parse_hosts_file(HOSTS)
    assert mapping["db"] == "10.0.0.5"
    assert mapping["db.internal"] == "10.0.0.5"
    assert "broken" not in mapping


def test_ip_literals_pass_through():
    assert is_ip_literal("::1")
    assert not is_ip_literal("db")
    assert HostResolver().resolve("192.168.1.4") == "192.168.1.4"


def test_hosts_file_override(tmp_path, monkeypatch):
    hosts = tmp_path / "hosts"
    hosts.write_text(HOSTS)

    def _no_dns(name):
        raise AssertionError("DNS should not be consulted")

    monkeypatch.setattr(socket, "gethostbyname", _no_dns)
    resolver = HostResolver(str(hosts))

    assert resolver.resolve_target(TcpTarget("DB", 5432)) == TcpTarget("10.0.0.5", 5432)


def test_unresolvable_name_is_kept_for_later(monkeypatch):
    def _fail(name):
        raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")

    monkeypatch.setattr(socket, "gethostbyname", _fail)
    assert HostResolver().resolve("db") == "db"


def test_dns_result_is_used(monkeypatch):
    monkeypatch.setattr(socket, "gethostbyname", lambda name: "10.1.2.3")
    assert HostResolver().resolve("db") == "10.1.2.3"


def test_missing_hosts_file_is_misconfiguration(tmp_path):
    with pytest.raises(MisconfigurationError):
        HostResolver(str(tmp_path / "nope"))
