"""Relay subscriptions through the nostr-sdk client.

A [RelayPool][georelay.utils.transport.RelayPool] fans one subscription out
to many relays at once and reports back through
[SubscriptionHandlers][georelay.utils.transport.SubscriptionHandlers]:

* ``on_event(event, relay_url)`` for every event a relay delivers on the
  subscription (after optional signature verification),
* ``on_eose(relay_url)`` when a relay has sent its stored backlog,
* ``on_error(relay_url, error)`` when a relay cannot be reached, drops its
  connection, or refuses the subscription with ``CLOSED``.

Callbacks from different relays interleave in any order. ``subscribe``
returns a plain callable that cancels the subscription on every relay.

[WebSocketRelayPool][georelay.utils.transport.WebSocketRelayPool] drives a
single ``nostr_sdk.Client``. Relays are added with per-relay
``RelayOptions``, each subscription targets exactly its own relays through
``ReqTarget.manual``, and two background tasks route the client
notification stream and the relay status ``Monitor`` to the handlers.
Reconnection, its backoff and re-sending open subscriptions after a
reconnect are left to nostr-sdk.

Note:
    This module sits in the ``utils`` layer: it reports builtin exceptions
    (``ConnectionError``, ``ValueError``) and nostr-sdk's ``NostrSdkError``
    to the handlers and never raises them to the caller of ``subscribe``.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import secrets
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Final, Protocol

from nostr_sdk import (
    Client,
    ClientBuilder,
    ClientNotification,
    Event,
    Filter,
    HandleMonitorNotification,
    Monitor,
    NostrSdkError,
    RelayOptions,
    RelayStatus,
    RelayUrl,
    ReqTarget,
    uniffi_set_event_loop,
)


logger = logging.getLogger(__name__)

# Silence nostr-sdk UniFFI callback stack traces (handled by our code)
logging.getLogger("nostr_sdk").setLevel(logging.CRITICAL)

DEFAULT_TIMEOUT: Final[float] = 10.0

_LOST_STATUSES: Final = frozenset(
    {RelayStatus.DISCONNECTED, RelayStatus.TERMINATED, RelayStatus.BANNED}
)

Unsubscribe = Callable[[], None]


def _ignore_eose(_relay_url: str) -> None:
    return None


def _ignore_error(_relay_url: str, _error: BaseException) -> None:
    return None


@dataclass(frozen=True, slots=True)
class SubscriptionHandlers:
    """Callbacks invoked for one subscription."""

    on_event: Callable[[dict[str, Any], str], None]
    on_eose: Callable[[str], None] = _ignore_eose
    on_error: Callable[[str, BaseException], None] = _ignore_error


class RelayPool(Protocol):
    """Anything that can fan a subscription out to a set of relays."""

    def subscribe(
        self,
        relays: Sequence[str],
        filters: Sequence[Filter],
        handlers: SubscriptionHandlers,
    ) -> Unsubscribe: ...

    async def close(self) -> None: ...


class RelayClosedError(ConnectionError):
    """The relay ended the subscription with a ``CLOSED`` message."""


def event_to_dict(event: Event) -> dict[str, Any]:
    """Return the NIP-01 JSON object of a nostr-sdk event."""
    result: dict[str, Any] = json.loads(event.as_json())
    return result


@dataclass(frozen=True, slots=True)
class _Subscription:
    relays: tuple[str, ...]
    filters: tuple[Filter, ...]
    handlers: SubscriptionHandlers


class _StatusHandler(HandleMonitorNotification):
    """Forwards relay status changes from the client monitor to the pool."""

    def __init__(self, pool: WebSocketRelayPool) -> None:
        self._pool = pool

    async def relay_status_changed(self, relay_url: RelayUrl, status: RelayStatus) -> None:
        self._pool._on_status(str(relay_url), status)


class WebSocketRelayPool:
    """[RelayPool][georelay.utils.transport.RelayPool] backed by ``nostr_sdk.Client``.

    Args:
        timeout: Seconds to wait for relay connections before subscribing.
        verify_signatures: Drop events whose id or signature does not check out.
        reconnect: Let nostr-sdk re-open dropped relay connections. Without
            it a relay that fails or drops stays down until the next
            subscription that names it.
        reconnect_base_delay: Initial nostr-sdk retry interval in seconds;
            nostr-sdk stretches it while a relay keeps failing and resets it
            after a successful connection.
        client_factory: Builds the client from the status monitor; the
            default uses ``ClientBuilder``.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,  # noqa: ASYNC109
        verify_signatures: bool = True,
        reconnect: bool = False,
        reconnect_base_delay: float = 1.0,
        client_factory: Callable[[Monitor], Client] | None = None,
    ) -> None:
        self._timeout = timeout
        self._verify_signatures = verify_signatures
        self._reconnect = reconnect
        self._reconnect_base_delay = reconnect_base_delay
        self._client_factory = client_factory or self._build_client

        self._client: Client | None = None
        self._background: list[asyncio.Task[None]] = []
        self._pending: set[asyncio.Task[None]] = set()
        self._subscriptions: dict[str, _Subscription] = {}
        # nostr-sdk spelling of a relay URL -> the URL callers subscribed with
        self._relays: dict[str, str] = {}

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    @staticmethod
    def _build_client(monitor: Monitor) -> Client:
        return ClientBuilder().monitor(monitor).build()

    def relay_options(self) -> RelayOptions:
        """Per-relay connection options derived from the pool settings."""
        opts = RelayOptions().reconnect(self._reconnect)
        if self._reconnect:
            opts = opts.retry_interval(timedelta(seconds=self._reconnect_base_delay))
            opts = opts.adjust_retry_interval(True)
        return opts

    def subscribe(
        self,
        relays: Sequence[str],
        filters: Sequence[Filter],
        handlers: SubscriptionHandlers,
    ) -> Unsubscribe:
        """Start streaming ``filters`` from every relay in ``relays``.

        Must be called from within a running event loop. Returns
        immediately; relays are connected and the subscription is sent in
        a background task.
        """
        sub_id = secrets.token_hex(8)
        subscription = _Subscription(tuple(dict.fromkeys(relays)), tuple(filters), handlers)
        self._subscriptions[sub_id] = subscription
        opening = self._spawn(self._open(sub_id, subscription), f"georelay-sub-{sub_id}")
        logger.debug("subscription_opened sub_id=%s relays=%d", sub_id, len(subscription.relays))

        def unsubscribe() -> None:
            if self._subscriptions.pop(sub_id, None) is None:
                return
            opening.cancel()
            self._spawn(self._close(sub_id), f"georelay-unsub-{sub_id}")

        return unsubscribe

    async def close(self) -> None:
        """Cancel every subscription and shut the client down."""
        self._subscriptions.clear()
        tasks = [*self._pending, *self._background]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._pending.clear()
        self._background.clear()
        self._relays.clear()

        client, self._client = self._client, None
        if client is not None:
            # nostr-sdk client.shutdown() can raise arbitrary errors from the
            # FFI layer during teardown
            with contextlib.suppress(Exception):
                await client.shutdown()

    # -------------------------------------------------------------------------
    # Client lifecycle
    # -------------------------------------------------------------------------

    def _spawn(self, coro: Any, name: str) -> asyncio.Task[None]:
        task: asyncio.Task[None] = asyncio.create_task(coro, name=name)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def _ensure_client(self) -> Client:
        if self._client is not None:
            return self._client

        # Monitor callbacks are Python coroutines driven through UniFFI
        uniffi_set_event_loop(asyncio.get_running_loop())
        monitor = Monitor()
        self._client = self._client_factory(monitor)
        self._background = [
            asyncio.create_task(self._pump_notifications(self._client), name="georelay-notify"),
            asyncio.create_task(
                monitor.handle_notifications(_StatusHandler(self)), name="georelay-monitor"
            ),
        ]
        return self._client

    async def _open(self, sub_id: str, subscription: _Subscription) -> None:
        client = self._ensure_client()
        targets: dict[str, RelayUrl] = {}
        for url in subscription.relays:
            try:
                relay_url = RelayUrl.parse(url)
                await client.add_relay(relay_url, opts=self.relay_options())
            except NostrSdkError as e:
                logger.warning("relay_add_failed url=%s error=%s", url, e)
                subscription.handlers.on_error(url, ValueError(str(e)))
                continue
            self._relays[str(relay_url)] = url
            targets[url] = relay_url
        if not targets:
            return

        wait = timedelta(seconds=self._timeout)
        if self._reconnect:
            await client.connect(and_wait=wait)
        else:
            output = await client.try_connect(wait)
            for relay_url, reason in output.failed.items():
                url = self._relays.get(str(relay_url))
                if url in targets:
                    logger.warning("relay_connect_failed url=%s error=%s", url, reason)
                    subscription.handlers.on_error(url, ConnectionError(reason))
                    del targets[url]
            if not targets:
                return

        if sub_id not in self._subscriptions:
            return
        req = ReqTarget.manual({relay_url: list(subscription.filters) for relay_url in targets.values()})
        output = await client.subscribe(req, id=sub_id)
        for relay_url, reason in output.failed.items():
            url = self._relays.get(str(relay_url), str(relay_url))
            logger.warning("subscription_failed url=%s error=%s", url, reason)
            subscription.handlers.on_error(url, ConnectionError(reason))

    async def _close(self, sub_id: str) -> None:
        client = self._client
        if client is None:
            return
        try:
            await client.unsubscribe(sub_id)
            in_use = {url for sub in self._subscriptions.values() for url in sub.relays}
            for key, url in list(self._relays.items()):
                if url in in_use:
                    continue
                del self._relays[key]
                await client.remove_relay(RelayUrl.parse(url), force=True)
        except NostrSdkError as e:
            logger.warning("subscription_close_failed sub_id=%s error=%s", sub_id, e)
        logger.debug("subscription_closed sub_id=%s", sub_id)

    # -------------------------------------------------------------------------
    # Notification routing
    # -------------------------------------------------------------------------

    async def _pump_notifications(self, client: Client) -> None:
        stream = client.notifications()
        while True:
            notification = await stream.next()
            if notification is None or notification.is_shutdown():
                return
            try:
                self._dispatch(notification)
            except Exception:
                logger.exception("subscription_handler_failed")

    def _dispatch(self, notification: ClientNotification) -> None:
        """Route one client notification to the subscription callbacks."""
        if not notification.is_message():
            return
        url = self._relays.get(str(notification.relay_url))
        if url is None:
            return

        message = notification.message.as_enum()
        if message.is_notice():
            logger.debug("relay_notice url=%s message=%s", url, message.message)
            return
        if not (message.is_event_msg() or message.is_end_of_stored_events() or message.is_closed()):
            return

        subscription = self._subscriptions.get(message.subscription_id)
        if subscription is None:
            return
        if message.is_event_msg():
            if self._verify_signatures and not message.event.verify():
                logger.debug("relay_event_unverified url=%s id=%s", url, message.event.id().to_hex())
                return
            subscription.handlers.on_event(event_to_dict(message.event), url)
        elif message.is_end_of_stored_events():
            subscription.handlers.on_eose(url)
        else:
            reason = message.message or "closed by relay"
            logger.info("subscription_closed url=%s reason=%s", url, reason)
            subscription.handlers.on_error(url, RelayClosedError(reason))

    def _on_status(self, key: str, status: RelayStatus) -> None:
        if status not in _LOST_STATUSES:
            return
        url = self._relays.get(key)
        if url is None:
            return
        logger.warning("relay_lost url=%s status=%s", url, status.name.lower())
        error = ConnectionResetError(f"relay {status.name.lower()}: {url}")
        for subscription in list(self._subscriptions.values()):
            if url in subscription.relays:
                subscription.handlers.on_error(url, error)
