from types import SimpleNamespace

import pytest

from ensdash import cli
from ensdash.errors import RevertReason, TransactionReverted
from ensdash.registrar import NameRegistrar, SessionState
from ensdash.schema import Domain
from tests.conftest import ALICE, RESOLVER, FakeGateway, FakeIndex, ManualScheduler


@pytest.fixture(autouse=True)
def sepolia_default(monkeypatch):
    monkeypatch.setenv("ENSDASH_CHAIN_ID", "11155111")


@pytest.fixture
def fake_gateway(monkeypatch):
    gateway = FakeGateway()
    monkeypatch.setattr(cli, "_gateway", lambda chain_id, with_wallet=False: gateway)
    return gateway


def test_no_arguments_prints_usage(capsys):
    assert cli.main([]) == 1
    assert "Commands:" in capsys.readouterr().out


def test_unknown_command(capsys):
    assert cli.main(["frobnicate"]) == 1
    assert "Unknown command: frobnicate" in capsys.readouterr().out


def test_names_marks_selection(monkeypatch, fake_gateway, capsys):
    index = FakeIndex({(ALICE, 11155111): [Domain(id="a", name="a.eth"), Domain(id="b", name="b.eth")]})
    monkeypatch.setattr(cli, "EnsSubgraphIndex", lambda: index)
    fake_gateway.reverse[ALICE] = "b.eth"

    assert cli.main(["names", ALICE]) == 0
    out = capsys.readouterr().out
    assert "* b.eth" in out
    assert "  a.eth" in out
    assert "Primary name: b.eth" in out


def test_names_bad_address(monkeypatch, fake_gateway, capsys):
    monkeypatch.setattr(cli, "EnsSubgraphIndex", lambda: FakeIndex())
    assert cli.main(["names", "0x123"]) == 1
    assert "Invalid Ethereum address" in capsys.readouterr().out


def test_check_available(fake_gateway, capsys):
    assert cli.main(["check", "alice", "2"]) == 0
    out = capsys.readouterr().out
    assert "'alice.eth' is available" in out
    assert "2 year(s)" in out


def test_check_taken(fake_gateway, capsys):
    fake_gateway.available = False
    assert cli.main(["check", "alice"]) == 1
    assert "not available" in capsys.readouterr().out


def test_check_invalid_label(fake_gateway, capsys):
    assert cli.main(["check", "ab"]) == 1
    assert "at least 3 characters" in capsys.readouterr().out


def test_bad_years(fake_gateway, capsys):
    assert cli.main(["check", "alice", "two"]) == 1
    assert "whole number" in capsys.readouterr().out


def test_records(fake_gateway, capsys):
    from ensdash.names import namehash

    node = namehash("alice.eth")
    fake_gateway.resolvers[node] = RESOLVER
    fake_gateway.texts[(node, "url")] = "https://alice.example"
    assert cli.main(["records", "alice.eth"]) == 0
    assert "url: https://alice.example" in capsys.readouterr().out


def test_set_text(fake_gateway, capsys):
    from ensdash.names import namehash

    fake_gateway.resolvers[namehash("alice.eth")] = RESOLVER
    assert cli.main(["set-text", "alice.eth", "url", "https://x"]) == 0
    assert fake_gateway.writes("setText")


def test_set_text_missing_arguments(fake_gateway, capsys):
    assert cli.main(["set-text", "alice.eth"]) == 1
    assert "Usage:" in capsys.readouterr().out


@pytest.fixture
def quick_registrar(monkeypatch, fake_gateway):
    created = []

    def factory(*args, **kwargs):
        registrar = NameRegistrar(*args, scheduler=ManualScheduler(), wait_seconds=0, **kwargs)
        created.append(registrar)
        return registrar

    fake_gateway.wallet = SimpleNamespace(address=ALICE)
    monkeypatch.setattr(cli, "NameRegistrar", factory)
    monkeypatch.setattr(cli, "REGISTER_RETRY_SECONDS", 0)
    return created


def test_register_success(quick_registrar, fake_gateway, capsys):
    assert cli.main(["register", "alice"]) == 0
    assert "Registered 'alice.eth'" in capsys.readouterr().out
    assert len(fake_gateway.writes("register")) == 1


def test_register_gives_up_and_resets_after_retries(quick_registrar, fake_gateway, capsys):
    fake_gateway.write_errors["register"] = [
        TransactionReverted("CommitmentTooNew", RevertReason.PREMATURE_REVEAL) for _ in range(cli.REGISTER_ATTEMPTS)
    ]
    assert cli.main(["register", "alice"]) == 1

    out = capsys.readouterr().out
    assert f"after {cli.REGISTER_ATTEMPTS} attempts" in out
    assert len(fake_gateway.writes("register")) == cli.REGISTER_ATTEMPTS
    (registrar,) = quick_registrar
    assert registrar.session.state == SessionState.INPUT
    assert registrar.session.label == ""
