"""Tests for domain name validation and the coalesce-on-conflict upsert."""

from datetime import datetime, timedelta, timezone

import pytest

from domatrend.clock import as_utc
from domatrend.schemas.registry import DomainInfo
from domatrend.services import domains
from domatrend.services.domains import InvalidDomainNameError, validate_domain_name

NOW = datetime(2025, 10, 1, 12, 0, tzinfo=timezone.utc)


def test_validate_trims_and_accepts():
    assert validate_domain_name("  demo.eth ") == "demo.eth"
    assert validate_domain_name("my-name_01.doma") == "my-name_01.doma"


@pytest.mark.parametrize("bad", ["", "   ", "has space.eth", ".eth", "demo.", "x" * 256, "emoji🙂.eth", None])
def test_validate_rejects(bad):
    with pytest.raises(InvalidDomainNameError):
        validate_domain_name(bad)


def test_merge_keeps_existing_when_incoming_absent():
    existing = {
        "token_id": "42",
        "owner": "0xabc",
        "claim_status": "CLAIMED",
        "network_id": "eip155:1",
        "token_address": "0xtoken",
        "minted_at": NOW - timedelta(days=10),
        "last_activity_at": None,
    }
    incoming = DomainInfo(name="demo.eth", owner=None, claim_status="CLAIMED", network_id="eip155:1")

    merged = domains.merge_domain_record(existing, incoming, NOW)

    assert merged["owner"] == "0xabc"
    assert merged["token_id"] == "42"
    assert merged["minted_at"] == NOW - timedelta(days=10)
    assert merged["updated_at"] == NOW


def test_merge_incoming_value_wins():
    existing = {"owner": "0xold", "claim_status": "CLAIMED", "network_id": "eip155:1"}
    incoming = DomainInfo(name="demo.eth", owner="0xnew", claim_status="CLAIMED", network_id="eip155:97476")

    merged = domains.merge_domain_record(existing, incoming, NOW)

    assert merged["owner"] == "0xnew"
    assert merged["network_id"] == "eip155:97476"


async def test_upsert_inserts_then_merges(session):
    await domains.upsert_domain(
        session,
        DomainInfo(name="demo.eth", token_id="7", owner="0xabc", claim_status="CLAIMED"),
        NOW,
    )
    later = NOW + timedelta(hours=1)
    await domains.upsert_domain(session, DomainInfo(name="demo.eth", token_address="0xtoken"), later)

    record = await domains.get_domain(session, "demo.eth")

    assert record.token_id == "7"
    assert record.owner == "0xabc"
    assert record.token_address == "0xtoken"
    assert as_utc(record.updated_at) == later
    assert len(await domains.list_domains(session)) == 1
