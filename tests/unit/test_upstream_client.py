"""Unit tests for the game-server upstream client."""

import asyncio
import time

import pytest

from src.serverpulse.status.models import (
    FetchErrorKind,
    MalformedResponse,
    Origin,
    PlayerBreakdown,
    UpstreamTimeout,
    UpstreamUnreachable,
)
from src.serverpulse.status.upstream import (
    PlayerMarkers,
    UpstreamStatusClient,
    classify_players,
    parse_players,
    parse_resource_count,
)

ADDRESS = "game.test:30120"


@pytest.fixture
async def client(game_server):
    client = UpstreamStatusClient(transport=game_server.transport)
    yield client
    await client.aclose()


class TestClassifyPlayers:
    """Role classification from display-name tags."""

    def test_classify_mixed_roster(self):
        names = ["[STAFF] Bob", "COPE Unit 5", "SAMU Dr. Lee", "Regular Joe"]
        assert classify_players(names) == PlayerBreakdown(total=4, police=1, medic=1, staff=1)

    def test_buckets_are_independent(self):
        breakdown = classify_players(["[STAFF] COPE SAMU Chief"])
        assert breakdown == PlayerBreakdown(total=1, police=1, medic=1, staff=1)

    def test_staff_marker_must_be_a_prefix(self):
        breakdown = classify_players(["Bob [STAFF]"])
        assert breakdown.staff == 0
        assert breakdown.total == 1

    def test_custom_markers(self):
        markers = PlayerMarkers(police="LSPD", medic="EMS", staff="[ADM]")
        breakdown = classify_players(["LSPD 1", "EMS 2", "[ADM] root", "COPE 3"], markers)
        assert breakdown == PlayerBreakdown(total=4, police=1, medic=1, staff=1)

    def test_empty_roster(self):
        assert classify_players([]) == PlayerBreakdown()


class TestParsing:
    """Defensive parsing of players.json and dynamic.json."""

    def test_non_list_players_payload_is_empty(self):
        assert parse_players({"error": "nope"}) == []
        assert parse_players(None) == []

    def test_players_skips_non_object_entries(self):
        players = parse_players([{"id": 1, "name": "A", "ping": "30"}, "garbage", None])
        assert len(players) == 1
        assert players[0].ping == 30

    def test_player_without_name(self):
        players = parse_players([{"id": 7}])
        assert players[0].name == ""

    def test_resource_count(self):
        assert parse_resource_count({"resources": ["a", "b"]}) == 2

    def test_resource_count_missing_or_malformed(self):
        assert parse_resource_count({}) is None
        assert parse_resource_count({"resources": "a,b"}) is None
        assert parse_resource_count([]) is None


@pytest.mark.asyncio
async def test_fetch_live_end_to_end(client, game_server):
    snapshot = await client.fetch_live(ADDRESS, timeout=3.0)

    assert snapshot.online is True
    assert snapshot.server_name == "Test City"
    assert snapshot.max_players == 64
    assert snapshot.players == 2
    assert snapshot.origin is Origin.LIVE
    assert snapshot.resource_count == 3
    assert snapshot.ping_ms is not None
    assert [p.name for p in snapshot.player_list] == ["A", "B"]
    assert game_server.calls == ["info.json", "players.json", "dynamic.json"]


@pytest.mark.asyncio
async def test_fetch_live_classifies_players(client, game_server):
    game_server.players = [
        {"name": "[STAFF] Bob"},
        {"name": "COPE Unit 5"},
        {"name": "SAMU Dr. Lee"},
        {"name": "Regular Joe"},
    ]
    snapshot = await client.fetch_live(ADDRESS, timeout=3.0)
    assert snapshot.player_breakdown == PlayerBreakdown(total=4, police=1, medic=1, staff=1)


@pytest.mark.asyncio
async def test_players_over_max_are_passed_through(client, game_server):
    game_server.info = {"vars": {"sv_hostname": "Tiny", "sv_maxClients": 1}}
    snapshot = await client.fetch_live(ADDRESS, timeout=3.0)
    assert snapshot.players == 2
    assert snapshot.max_players == 1


@pytest.mark.asyncio
async def test_missing_vars_use_fallbacks(game_server):
    game_server.info = {"resources": []}
    client = UpstreamStatusClient(
        fallback_server_name="Fallback City",
        fallback_max_players=32,
        transport=game_server.transport,
    )
    try:
        snapshot = await client.fetch_live(ADDRESS, timeout=3.0)
    finally:
        await client.aclose()
    assert snapshot.server_name == "Fallback City"
    assert snapshot.max_players == 32


@pytest.mark.asyncio
async def test_connection_refused_is_unreachable(client, game_server):
    game_server.refuse_connections = True
    with pytest.raises(UpstreamUnreachable) as exc_info:
        await client.fetch_live(ADDRESS, timeout=3.0)
    assert exc_info.value.kind is FetchErrorKind.UNREACHABLE
    assert exc_info.value.document == "info.json"


@pytest.mark.asyncio
async def test_info_non_success_is_unreachable(client, game_server):
    game_server.status_codes["info.json"] = 503
    with pytest.raises(UpstreamUnreachable):
        await client.fetch_live(ADDRESS, timeout=3.0)
    assert game_server.calls == ["info.json"]


@pytest.mark.asyncio
async def test_players_failure_is_unreachable(client, game_server):
    game_server.status_codes["players.json"] = 500
    with pytest.raises(UpstreamUnreachable) as exc_info:
        await client.fetch_live(ADDRESS, timeout=3.0)
    assert exc_info.value.document == "players.json"


@pytest.mark.asyncio
async def test_info_invalid_json_is_malformed(client, game_server):
    game_server.info = "<html>not json</html>"
    with pytest.raises(MalformedResponse) as exc_info:
        await client.fetch_live(ADDRESS, timeout=3.0)
    assert exc_info.value.kind is FetchErrorKind.MALFORMED_RESPONSE


@pytest.mark.asyncio
async def test_info_not_an_object_is_malformed(client, game_server):
    game_server.info = ["unexpected"]
    with pytest.raises(MalformedResponse):
        await client.fetch_live(ADDRESS, timeout=3.0)


@pytest.mark.asyncio
async def test_non_array_players_counts_as_empty(client, game_server):
    game_server.players = {"message": "rate limited"}
    snapshot = await client.fetch_live(ADDRESS, timeout=3.0)
    assert snapshot.online is True
    assert snapshot.players == 0
    assert snapshot.player_breakdown == PlayerBreakdown()


@pytest.mark.asyncio
async def test_resources_failure_only_blanks_count(client, game_server):
    game_server.status_codes["dynamic.json"] = 404
    snapshot = await client.fetch_live(ADDRESS, timeout=3.0)
    assert snapshot.online is True
    assert snapshot.resource_count is None


@pytest.mark.asyncio
async def test_resources_connection_error_only_blanks_count(client, game_server):
    game_server.refused_documents.add("dynamic.json")
    snapshot = await client.fetch_live(ADDRESS, timeout=3.0)
    assert snapshot.resource_count is None


@pytest.mark.asyncio
async def test_resources_malformed_only_blanks_count(client, game_server):
    game_server.dynamic = "definitely not json"
    snapshot = await client.fetch_live(ADDRESS, timeout=3.0)
    assert snapshot.resource_count is None


@pytest.mark.asyncio
async def test_timeout_covers_whole_sequence(client, game_server):
    # Each request alone fits the deadline; together they do not.
    game_server.delays = {"info.json": 0.15, "players.json": 0.15, "dynamic.json": 0.15}
    started = time.perf_counter()
    with pytest.raises(UpstreamTimeout) as exc_info:
        await client.fetch_live(ADDRESS, timeout=0.25)
    elapsed = time.perf_counter() - started

    assert exc_info.value.kind is FetchErrorKind.TIMEOUT
    assert elapsed < 1.0
    assert game_server.cancelled == ["players.json"]


@pytest.mark.asyncio
async def test_hung_upstream_is_cancelled(client, game_server):
    game_server.delays = {"info.json": 30}
    with pytest.raises(UpstreamTimeout):
        await client.fetch_live(ADDRESS, timeout=0.1)
    # Give the cancelled handler a tick to record itself.
    await asyncio.sleep(0)
    assert game_server.cancelled == ["info.json"]
