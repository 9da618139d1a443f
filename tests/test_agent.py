"""Tests for the client NotificationAgent."""

import asyncio
import json

import httpx
import pytest
from conftest import T0, FakePushTransport

from propertyalerts.client import (
    InteractionReporter,
    NotificationAgent,
    NotificationPlatform,
    WindowClient,
    resolve_target_url,
)
from propertyalerts.channels import PushDispatcher, compose_alert_push
from propertyalerts.models import NotificationEvent, NotificationKind

ORIGIN = "https://app.example.com"


class FakeWindow(WindowClient):
    def __init__(self, url: str):
        self._url = url
        self.focused = False
        self.messages: list[dict] = []

    @property
    def url(self) -> str:
        return self._url

    async def focus(self):
        self.focused = True

    async def post_message(self, message):
        self.messages.append(message)


class FakePlatform(NotificationPlatform):
    def __init__(self, windows=None):
        self.shown = []
        self.closed = []
        self.opened: list[str] = []
        self.windows = windows or []

    async def show(self, notification):
        self.shown.append(notification)

    async def close(self, notification):
        self.closed.append(notification)

    async def match_windows(self):
        return self.windows

    async def open_window(self, url):
        self.opened.append(url)


class AnalyticsEndpoint:
    """httpx mock handler collecting interaction records."""

    def __init__(self, status_code: int = 204):
        self.records: list[dict] = []
        self.status_code = status_code

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.records.append(json.loads(request.content))
        return httpx.Response(self.status_code)


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def endpoint() -> AnalyticsEndpoint:
    return AnalyticsEndpoint()


@pytest.fixture
def agent(platform, endpoint) -> NotificationAgent:
    reporter = InteractionReporter(
        "https://analytics.example.com/events",
        client=httpx.AsyncClient(transport=httpx.MockTransport(endpoint)),
    )
    return NotificationAgent(
        platform,
        origin=ORIGIN,
        reporter=reporter,
        namespace="astra",
        cache_version="v2",
        clock=lambda: T0,
    )


def push_payload(ntype: str, **data) -> bytes:
    return json.dumps({
        "title": "Price drop",
        "body": "Villa Ubud is now Rp 880M",
        "data": {"type": ntype, "url": "/property/villa-1", "timestamp": 1, **data},
    }).encode()


class TestRendering:
    """Test on_push rendering."""

    def test_type_style_and_actions(self, agent, platform):
        notification = asyncio.run(agent.on_push(push_payload("price_drop", propertyId="villa-1")))

        assert platform.shown == [notification]
        assert notification.icon == "/icons/price-drop.png"
        assert notification.require_interaction
        assert [a["action"] for a in notification.actions] == ["view_property", "save"]
        assert [a["title"] for a in notification.actions] == ["View Property", "Save for Later"]
        assert notification.vibrate == (100, 50, 100)
        assert notification.tag.startswith("astra-price_drop-")

    @pytest.mark.parametrize(
        "ntype,persistent",
        [("viewing", True), ("price_drop", True), ("new_match", False), ("message", False), ("market", False)],
    )
    def test_require_interaction_only_for_viewing_and_price_drop(self, agent, ntype, persistent):
        notification = asyncio.run(agent.on_push(push_payload(ntype)))

        assert notification.require_interaction is persistent
        assert len(notification.actions) == 2

    def test_same_type_twice_gives_distinct_tags(self, agent, platform):
        async def two():
            await agent.on_push(push_payload("new_match"))
            await agent.on_push(push_payload("new_match"))

        asyncio.run(two())

        assert len(platform.shown) == 2
        assert platform.shown[0].tag != platform.shown[1].tag

    def test_unknown_type_uses_default(self, agent):
        notification = asyncio.run(agent.on_push(push_payload("promo")))

        assert notification.icon == "/icon-192.png"
        assert [a["action"] for a in notification.actions] == ["view", "dismiss"]

    def test_malformed_payload_shows_text(self, agent):
        notification = asyncio.run(agent.on_push(b"You have a new message"))

        assert notification.title == "ASTRA Villa Realty"
        assert notification.body == "You have a new message"
        assert notification.type == "default"

    def test_empty_payload(self, agent):
        notification = asyncio.run(agent.on_push(None))

        assert notification.title == "ASTRA Villa Realty"
        assert notification.tag.startswith("astra-default-")

    def test_non_object_data_is_ignored(self, agent):
        payload = json.dumps({"title": "Hello", "body": "Hi", "data": ["not", "an", "object"]})

        notification = asyncio.run(agent.on_push(payload))

        assert notification.type == "default"
        assert notification.body == "Hi"

    def test_message_used_when_body_missing(self, agent):
        payload = json.dumps({"title": "Viewing", "message": "Tomorrow at 10:00", "data": {"type": "viewing"}})

        notification = asyncio.run(agent.on_push(payload))

        assert notification.body == "Tomorrow at 10:00"

    @pytest.mark.parametrize(
        "kind,icon",
        [(NotificationKind.PRICE_DROP, "/icons/price-drop.png"), (NotificationKind.NEW_MATCH, "/icons/new-match.png")],
    )
    def test_alert_push_renders_type_icon(self, agent, credential, kind, icon):
        """Pushes sent by the pipeline show the per-type icon on the device."""
        event = NotificationEvent(
            user_id="user-1",
            subscription_id="sub-1",
            kind=kind,
            listing_id="villa-1",
            title="Villa Ubud",
            message="Now Rp 880M",
            metadata={"listing_title": "Villa Ubud"},
            created_at=T0,
        )
        transport = FakePushTransport()
        push = PushDispatcher(vapid_private_key="k", transport=transport)
        title, body, data, image = compose_alert_push(kind, [event], base_url=ORIGIN)
        push.send(credential, title, body, data, image=image)

        notification = asyncio.run(agent.on_push(transport.calls[0]["data"]))

        assert notification.icon == icon
        assert notification.data["propertyId"] == "villa-1"


class TestClickRouting:
    """Test on_notification_click."""

    def test_focuses_open_window_and_posts_message(self, agent, platform):
        window = FakeWindow(f"{ORIGIN}/search")
        other = FakeWindow("https://elsewhere.example.com/")
        platform.windows = [other, window]

        async def scenario():
            n = await agent.on_push(push_payload("price_drop", propertyId="villa-1"))
            url = await agent.on_notification_click(n, "view_property")
            await agent.drain()
            return n, url

        notification, url = asyncio.run(scenario())

        assert url == f"{ORIGIN}/property/villa-1"
        assert platform.closed == [notification]
        assert window.focused
        assert not other.focused
        assert window.messages == [{
            "type": "NOTIFICATION_CLICK",
            "data": notification.data,
            "action": "view_property",
            "targetUrl": f"{ORIGIN}/property/villa-1",
        }]
        assert platform.opened == []

    def test_opens_window_when_none_open(self, agent, platform):
        async def scenario():
            n = await agent.on_push(push_payload("viewing", bookingId="bk-7"))
            return await agent.on_notification_click(n, "reschedule")

        url = asyncio.run(scenario())

        assert url == f"{ORIGIN}/bookings/bk-7/reschedule"
        assert platform.opened == [url]

    def test_body_click_uses_payload_url(self, agent, platform):
        async def scenario():
            n = await agent.on_push(push_payload("new_match"))
            return await agent.on_notification_click(n)

        assert asyncio.run(scenario()) == f"{ORIGIN}/property/villa-1"

    def test_dismiss_does_not_navigate(self, agent, platform, endpoint):
        platform.windows = [FakeWindow(f"{ORIGIN}/")]

        async def scenario():
            n = await agent.on_push(push_payload("market"))
            url = await agent.on_notification_click(n, "dismiss")
            await agent.drain()
            return url

        assert asyncio.run(scenario()) is None
        assert len(platform.closed) == 1
        assert platform.opened == []
        assert platform.windows[0].messages == []
        assert endpoint.records[0]["action"] == "dismiss"

    def test_missing_template_field_falls_back(self):
        url = resolve_target_url("reschedule", {"type": "viewing", "url": "/bookings"}, ORIGIN)

        assert url == f"{ORIGIN}/bookings"


class TestAnalytics:
    """Test interaction reporting."""

    def test_click_and_close_are_reported(self, agent, endpoint):
        async def scenario():
            n = await agent.on_push(push_payload("new_match", id="evt-1"))
            await agent.on_notification_click(n, "view_all")
            await agent.on_notification_close(n)
            await agent.drain()

        asyncio.run(scenario())

        assert [r["action"] for r in endpoint.records] == ["view_all", "dismiss"]
        record = endpoint.records[0]
        assert record["notificationId"] == "evt-1"
        assert record["type"] == "new_match"
        assert record["timestamp"] == int(T0.timestamp() * 1000)

    def test_failed_report_does_not_block_click(self, platform):
        def down(request):
            raise httpx.ConnectError("analytics down", request=request)

        reporter = InteractionReporter(
            "https://analytics.example.com/events",
            client=httpx.AsyncClient(transport=httpx.MockTransport(down)),
        )
        agent = NotificationAgent(platform, origin=ORIGIN, reporter=reporter, clock=lambda: T0)

        async def scenario():
            n = await agent.on_push(push_payload("new_match"))
            url = await agent.on_notification_click(n, "view_property")
            await agent.drain()
            return url

        assert asyncio.run(scenario()) == f"{ORIGIN}/property/villa-1"
        assert platform.opened == [f"{ORIGIN}/property/villa-1"]

    def test_report_returns_false_on_error_status(self):
        endpoint = AnalyticsEndpoint(status_code=503)
        reporter = InteractionReporter(
            "https://analytics.example.com/events",
            client=httpx.AsyncClient(transport=httpx.MockTransport(endpoint)),
        )

        assert asyncio.run(reporter.report({"action": "dismiss"})) is False
        assert len(endpoint.records) == 1


class TestShutdown:
    """Test releasing the analytics client."""

    def test_close_drains_and_closes_reporter(self, agent, endpoint):
        client = agent.reporter._client

        async def scenario():
            n = await agent.on_push(push_payload("market"))
            await agent.on_notification_close(n)
            await agent.close()

        asyncio.run(scenario())

        assert len(endpoint.records) == 1
        assert client.is_closed
        assert agent.reporter._client is None

    def test_close_without_reporter(self, platform):
        agent = NotificationAgent(platform, origin=ORIGIN)

        asyncio.run(agent.close())


class TestCache:
    """Test the last-notification cache and its generations."""

    def test_last_notification_lookup(self, agent):
        async def scenario():
            await agent.on_push(push_payload("message", messageId="m1"))
            return await agent.on_message({"type": "GET_LAST_NOTIFICATION"})

        last = asyncio.run(scenario())

        assert last["data"]["messageId"] == "m1"
        assert last["tag"].startswith("astra-message-")

    def test_activate_evicts_old_generations(self, platform):
        caches = {
            "astra-notifications-v1": {"last-notification": {}},
            "astra-notifications-v2": {},
            "astra-images": {},
        }
        agent = NotificationAgent(platform, origin=ORIGIN, namespace="astra", cache_version="v2", caches=caches)

        asyncio.run(agent.on_activate())

        assert set(caches) == {"astra-notifications-v2", "astra-images"}

    def test_install_creates_current_generation(self, platform):
        agent = NotificationAgent(platform, origin=ORIGIN, namespace="astra", cache_version="v3")

        asyncio.run(agent.on_install())

        assert agent.caches == {"astra-notifications-v3": {}}

    def test_clear_cache_message(self, agent):
        async def scenario():
            await agent.on_push(push_payload("market"))
            await agent.on_message({"type": "CLEAR_NOTIFICATION_CACHE"})
            return await agent.on_message({"type": "GET_LAST_NOTIFICATION"})

        assert asyncio.run(scenario()) is None
