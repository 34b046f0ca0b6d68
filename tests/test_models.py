"""
Test burn record model and token table.
"""

from datetime import datetime, timedelta, timezone

from burn_tracker.core.tokens import TOKEN_MAP, TokenRegistry
from burn_tracker.models.burn import BurnRecord, BurnWindow, RunStats


WINDOW_FIELDS = [
    "burn5min", "burn15min", "burn30min", "burn1h",
    "burn3h", "burn6h", "burn12h", "burn24h",
]


def test_windows_are_ordered_and_nested():
    """Test windows run shortest to longest with the expected keys."""
    assert [window.field_name for window in BurnWindow] == WINDOW_FIELDS
    seconds = [window.seconds for window in BurnWindow]
    assert seconds == sorted(seconds)
    assert BurnWindow.TWENTY_FOUR_HOURS.seconds == 86400


def test_record_fills_missing_windows_with_zero():
    """Test every window is present even when only some were computed."""
    record = BurnRecord(
        address="0xabc",
        symbol="abc",
        decimals=18,
        latest_block=1,
        burns={BurnWindow.ONE_HOUR: 2.5},
    )

    assert set(record.burns) == set(BurnWindow)
    assert record.burns[BurnWindow.FIVE_MIN] == 0
    assert record.burns[BurnWindow.ONE_HOUR] == 2.5
    assert record.next_update - record.last_updated == timedelta(minutes=5)


def test_record_document_shape():
    """Test the stored document has one key per window plus metadata."""
    updated = datetime(2026, 5, 1, 8, 30, tzinfo=timezone.utc)
    record = BurnRecord(
        address="0xabc",
        symbol="abc",
        decimals=9,
        latest_block=123,
        burns={BurnWindow.FIVE_MIN: 1.0},
        raw_burns={BurnWindow.FIVE_MIN: 10 ** 9},
        last_updated=updated,
    )

    document = record.to_document()

    for key in ["address", *WINDOW_FIELDS, "lastUpdated", "nextUpdate"]:
        assert key in document
    assert document["burn5min"] == 1.0
    assert document["raw"]["burn5min"] == "1000000000"
    assert document["raw"]["burn24h"] == "0"
    assert document["latestBlock"] == 123
    assert document["lastUpdated"] == "2026-05-01T08:30:00+00:00"
    assert document["nextUpdate"] == "2026-05-01T08:35:00+00:00"


def test_run_stats_success_rate():
    """Test success rate handles empty runs."""
    assert RunStats().success_rate == 0.0
    assert RunStats(tokens_total=4, tokens_succeeded=3).success_rate == 0.75


def test_token_registry_case_insensitive():
    """Test lookups ignore symbol case."""
    tokens = TokenRegistry({"WKC": "0x6Ec90334d89dBdc89E08A133271be3d104128Edb"})

    assert "wkc" in tokens
    assert "Wkc" in tokens
    assert tokens.get("WKC").symbol == "wkc"
    assert tokens.get("") is None
    assert "other" not in tokens


def test_default_token_table():
    """Test the built-in table is loaded with lowercase symbols."""
    tokens = TokenRegistry()

    assert len(tokens) == len(TOKEN_MAP) == 23
    assert all(symbol == symbol.lower() for symbol in tokens.symbols)
    assert all(token.address.startswith("0x") and len(token.address) == 42 for token in tokens.all())
