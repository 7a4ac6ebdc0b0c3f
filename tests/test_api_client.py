import asyncio

import aiohttp
import pytest

from soundcloud_cli.api.client import authorization_header, with_query
from soundcloud_cli.exceptions import (
    DecodeFailedError,
    NotFoundError,
    RateLimitedError,
    RequestFailedError,
    UnauthorizedError,
)
from tests.support.fakes import API, FakeResponse, track_json

ME_URL = API + "me"
ME = {"id": 1, "username": "listener", "permalink": "listener"}


class TestAuthorizationHeader:
    def test_bare_token_gets_oauth_scheme(self):
        assert authorization_header("2-123-abc") == "OAuth 2-123-abc"

    @pytest.mark.parametrize("token", ["OAuth 2-123-abc", "Bearer xyz"])
    def test_token_with_scheme_is_sent_verbatim(self, token):
        assert authorization_header(token) == token


def test_with_query_replaces_existing_parameter():
    url = with_query(API + "users/1/track_likes?offset=abc&limit=50", limit=10)
    assert url == API + "users/1/track_likes?offset=abc&limit=10"


def test_requests_carry_authorization_header(session, make_client):
    session.routes[ME_URL] = FakeResponse(ME)

    me = asyncio.run(make_client().get_me())

    assert me.username == "listener"
    assert session.requests[0]["headers"]["Authorization"] == "OAuth secret-token"


@pytest.mark.parametrize("status", [401, 403])
def test_rejected_token_is_unauthorized_without_retry(session, make_client, status):
    session.routes[ME_URL] = FakeResponse({"error": "nope"}, status=status)

    with pytest.raises(UnauthorizedError):
        asyncio.run(make_client().get_me())
    assert len(session.requests) == 1


def test_missing_resource_is_not_found(session, make_client):
    session.routes[API + "tracks/42"] = FakeResponse(status=404)

    with pytest.raises(NotFoundError):
        asyncio.run(make_client().fetch_track(42))
    assert len(session.requests) == 1


def test_invalid_json_is_decode_failure(session, make_client):
    session.routes[ME_URL] = FakeResponse("<html>maintenance</html>")

    with pytest.raises(DecodeFailedError):
        asyncio.run(make_client().get_me())


def test_schema_mismatch_is_decode_failure(session, make_client):
    session.routes[API + "tracks/5"] = FakeResponse({"id": "not-a-number"})

    with pytest.raises(DecodeFailedError):
        asyncio.run(make_client().fetch_track(5))


def test_transient_errors_are_retried(session, make_client):
    session.routes[ME_URL] = [
        FakeResponse(status=503),
        FakeResponse(error=aiohttp.ClientConnectionError("reset")),
        FakeResponse(ME),
    ]

    me = asyncio.run(make_client(retries=3).get_me())

    assert me.id == 1
    assert len(session.requests) == 3


def test_retries_are_bounded(session, make_client):
    session.routes[ME_URL] = FakeResponse(status=500)

    with pytest.raises(RequestFailedError) as exc_info:
        asyncio.run(make_client(retries=2).get_me())
    assert exc_info.value.status == 500
    assert len(session.requests) == 2


def test_persistent_429_is_rate_limited(session, make_client):
    session.routes[ME_URL] = FakeResponse(status=429)

    with pytest.raises(RateLimitedError):
        asyncio.run(make_client(retries=3).get_me())
    assert len(session.requests) == 3


def test_fetch_tracks_batches_ids(session, make_client):
    def tracks_route(url):
        ids = url.split("ids=")[1].replace("%2C", ",").split(",")
        return FakeResponse([track_json(int(i)) for i in ids])

    session.routes[API + "tracks"] = tracks_route

    tracks = asyncio.run(make_client().fetch_tracks(list(range(1, 61))))

    assert sorted(tracks) == list(range(1, 61))
    assert len(session.requests) == 2


def test_fetch_tracks_drops_unreadable_records(session, make_client):
    untitled = track_json(2)
    untitled["title"] = None
    session.routes[API + "tracks"] = FakeResponse(
        [track_json(1), untitled, {"id": "three", "user": None}, track_json(4)]
    )

    tracks = asyncio.run(make_client().fetch_tracks([1, 2, 3, 4]))

    assert sorted(tracks) == [1, 2, 4]
    assert tracks[2].title == ""


def test_fetch_stream_url_exchanges_transcoding(session, make_client):
    from soundcloud_cli.models.track import Track

    track = Track.model_validate(track_json(7))
    transcoding = track.media.transcodings[0]
    session.routes[transcoding.url] = FakeResponse({"url": "https://cf-media.sndcdn.com/x.mp3"})

    url = asyncio.run(make_client().fetch_stream_url(transcoding))

    assert url == "https://cf-media.sndcdn.com/x.mp3"


def test_fetch_bytes_streams_without_auth(session, make_client):
    session.routes["https://cdn.example/a.mp3"] = FakeResponse(b"x" * 300_000)
    received = []

    data = asyncio.run(
        make_client().fetch_bytes("https://cdn.example/a.mp3", on_chunk=received.append)
    )

    assert len(data) == 300_000
    assert sum(received) == 300_000
    assert "Authorization" not in session.requests[0]["headers"]


@pytest.mark.parametrize("status", [401, 403])
def test_refused_cdn_download_is_not_a_token_problem(session, make_client, status):
    session.routes["https://cdn.example/a.mp3"] = FakeResponse(status=status)

    with pytest.raises(RequestFailedError, match="Stream URL expired") as exc_info:
        asyncio.run(make_client().fetch_bytes("https://cdn.example/a.mp3"))

    assert not isinstance(exc_info.value, UnauthorizedError)
    assert exc_info.value.status == status
    assert len(session.requests) == 1


def test_close_leaves_borrowed_session_open(session, make_client):
    asyncio.run(make_client().close())
    assert session.closed is False


class TestLikesPaging:
    def _likes(self, start, count):
        return [{"track": track_json(i)} for i in range(start, start + count)]

    async def _collect(self, client, **kwargs):
        return [like async for like in client.iter_likes(1, **kwargs)]

    def test_window_uses_exactly_two_requests(self, session, make_client):
        first = API + "users/1/track_likes?limit=25&offset=10"
        cursor = API + "users/1/track_likes?offset=1620000000000%2C123&limit=25"
        session.routes[first] = FakeResponse(
            {"collection": self._likes(10, 25), "next_href": cursor}
        )
        session.routes[cursor] = FakeResponse(
            {
                "collection": self._likes(35, 25),
                "next_href": API + "users/1/track_likes?offset=later&limit=25",
            }
        )

        likes = asyncio.run(
            self._collect(make_client(), skip=10, limit=50, chunk_size=25)
        )

        assert len(likes) == 50
        assert [like.track.id for like in likes] == list(range(10, 60))
        assert session.urls() == [first, cursor]

    def test_next_page_limit_shrinks_to_remaining(self, session, make_client):
        first = API + "users/1/track_likes?limit=25&offset=0"
        session.routes[first] = FakeResponse(
            {
                "collection": self._likes(0, 25),
                "next_href": API + "users/1/track_likes?offset=cursor&limit=25",
            }
        )
        second = API + "users/1/track_likes?offset=cursor&limit=5"
        session.routes[second] = FakeResponse({"collection": self._likes(25, 5)})

        likes = asyncio.run(self._collect(make_client(), skip=0, limit=30, chunk_size=25))

        assert len(likes) == 30
        assert session.urls() == [first, second]

    def test_stops_without_next_href(self, session, make_client):
        first = API + "users/1/track_likes?limit=10&offset=0"
        session.routes[first] = FakeResponse({"collection": self._likes(0, 3)})

        likes = asyncio.run(self._collect(make_client(), skip=0, limit=10, chunk_size=50))

        assert len(likes) == 3
        assert len(session.requests) == 1

    def test_stops_on_empty_page(self, session, make_client):
        first = API + "users/1/track_likes?limit=10&offset=0"
        session.routes[first] = FakeResponse(
            {"collection": [], "next_href": API + "users/1/track_likes?offset=x"}
        )

        likes = asyncio.run(self._collect(make_client(), skip=0, limit=10, chunk_size=10))

        assert likes == []
        assert len(session.requests) == 1

    def test_unreadable_like_is_kept_in_place(self, session, make_client):
        untitled = track_json(2)
        untitled["title"] = None
        first = API + "users/1/track_likes?limit=4&offset=0"
        session.routes[first] = FakeResponse(
            {
                "collection": [
                    {"track": track_json(1)},
                    {"track": untitled},
                    {"track": {"id": 3, "user": "not-a-user"}},
                    {"track": track_json(4)},
                ]
            }
        )

        likes = asyncio.run(self._collect(make_client(), skip=0, limit=4, chunk_size=4))

        assert [like.track.id if like.track else None for like in likes] == [1, 2, None, 4]
        assert likes[1].track.title == ""
        assert "like" in likes[2].decode_error
        assert all(like.decode_error is None for i, like in enumerate(likes) if i != 2)
