"""
Builds the dining services once per application and hands them to
controllers through ``current_app.extensions``.
"""

import datetime as dt
from dataclasses import dataclass
from typing import Mapping

from flask import current_app

from app.services.confirmation_engine import ConfirmationEngine
from app.services.dining_status_service import DiningStatusService
from app.services.menu_resolver import MenuResolver
from app.services.order_registrar import OrderRegistrar
from app.services.qr_token_service import QRTokenService
from app.services.time_window_policy import TimeWindowPolicy
from app.utils.cache import TTLCache
from app.utils.timeutil import Clock, SystemClock

EXTENSION_KEY = "dining"
CLOCK_KEY = "clock"


@dataclass
class DiningServices:
    policy: TimeWindowPolicy
    menu_cache: TTLCache
    stats_cache: TTLCache
    resolver: MenuResolver
    tokens: QRTokenService
    registrar: OrderRegistrar
    engine: ConfirmationEngine
    status: DiningStatusService


class _AppClock:
    """Reads whichever clock is installed on the app, so tests can swap it after startup."""

    def __init__(self, extensions: dict):
        self._extensions = extensions

    def now_utc(self) -> dt.datetime:
        return self._extensions[CLOCK_KEY].now_utc()


def build_services(config: Mapping, clock: Clock) -> DiningServices:
    policy = TimeWindowPolicy.from_config(config)
    menu_cache = TTLCache(
        max_size=int(config.get("MENU_CACHE_MAX_ENTRIES", 100)),
        ttl_seconds=int(config.get("MENU_CACHE_TTL_SECONDS", 300)),
    )
    stats_cache = TTLCache(
        max_size=int(config.get("STATS_CACHE_MAX_ENTRIES", 50)),
        ttl_seconds=int(config.get("STATS_CACHE_TTL_SECONDS", 60)),
    )
    resolver = MenuResolver(menu_cache, clock)
    tokens = QRTokenService(
        secret=config.get("QR_TOKEN_SECRET") or config.get("SECRET_KEY"),
        ttl_seconds=int(config.get("QR_TOKEN_TTL_SECONDS", 300)),
        max_ttl_seconds=int(config.get("QR_TOKEN_MAX_TTL_SECONDS", 3600)),
    )
    status = DiningStatusService(policy, resolver, stats_cache)
    batch_max = int(config.get("BATCH_MAX_ITEMS", 100))

    return DiningServices(
        policy=policy,
        menu_cache=menu_cache,
        stats_cache=stats_cache,
        resolver=resolver,
        tokens=tokens,
        registrar=OrderRegistrar(policy, resolver, batch_max_items=batch_max, on_change=status.invalidate_stats),
        engine=ConfirmationEngine(policy, tokens, batch_max_items=batch_max, on_change=status.invalidate_stats),
        status=status,
    )


def init_app(app) -> DiningServices:
    app.extensions.setdefault(CLOCK_KEY, app.config.get("CLOCK") or SystemClock())
    services = build_services(app.config, _AppClock(app.extensions))
    app.extensions[EXTENSION_KEY] = services
    return services


def get_services() -> DiningServices:
    return current_app.extensions[EXTENSION_KEY]


def set_clock(app, clock: Clock) -> None:
    app.extensions[CLOCK_KEY] = clock


def request_now() -> dt.datetime:
    """The single ``now`` a request works with; read once in the controller."""
    return current_app.extensions[CLOCK_KEY].now_utc()
