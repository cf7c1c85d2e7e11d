"""
Calendar sync reconciler

Merges events from connected external calendars into local calendar events
and exports local events that were never mirrored. Events are matched by
(user, provider, external id), so repeated imports update rather than
duplicate.

A failing provider only fails its own connection: the error is recorded in the
SyncResult and on the connection, and the remaining connections still sync.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import pytz

from config import settings
from core.interfaces.calendar_provider import CalendarProviderClient, CalendarProviderError, EventNormalizer
from core.interfaces.repositories import CalendarConnection, CalendarConnectionRepository, CalendarEventRepository
from core.scheduling.models import as_utc
from core.sync.normalizers import GoogleEventNormalizer, OutlookEventNormalizer
from utils.logger import get_logger

logger = get_logger("sync")

IMPORT_DIRECTIONS = ("import", "bidirectional")
EXPORT_DIRECTIONS = ("export", "bidirectional")


@dataclass
class SyncResult:
    imported: int = 0
    exported: int = 0
    errors: List[str] = field(default_factory=list)
    conflicts: List[str] = field(default_factory=list)


@dataclass
class ProviderEntry:
    client_factory: Callable[[str], CalendarProviderClient]
    normalizer: EventNormalizer


class ProviderRegistry:
    """Provider name -> client factory and normalizer"""

    def __init__(self):
        self._entries: Dict[str, ProviderEntry] = {}

    def register(
        self,
        provider: str,
        client_factory: Callable[[str], CalendarProviderClient],
        normalizer: EventNormalizer
    ) -> None:
        self._entries[provider] = ProviderEntry(client_factory, normalizer)

    def get(self, provider: str) -> Optional[ProviderEntry]:
        return self._entries.get(provider)

    @property
    def providers(self) -> List[str]:
        return sorted(self._entries)


def default_registry() -> ProviderRegistry:
    """Registry with the Google and Outlook REST clients"""
    from providers.google.google_calendar_client import GoogleCalendarClient
    from providers.outlook.outlook_calendar_client import OutlookCalendarClient

    registry = ProviderRegistry()
    registry.register("google", GoogleCalendarClient, GoogleEventNormalizer())
    registry.register("outlook", OutlookCalendarClient, OutlookEventNormalizer())
    return registry


class ConnectionSyncError(Exception):
    """A provider call failed or timed out; aborts one connection only"""


class CalendarSyncReconciler:
    """Runs import/export passes over a user's active connections"""

    def __init__(
        self,
        connection_repo: CalendarConnectionRepository,
        event_repo: CalendarEventRepository,
        registry: ProviderRegistry,
        timeout_seconds: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.connection_repo = connection_repo
        self.event_repo = event_repo
        self.registry = registry
        self.timeout_seconds = timeout_seconds or settings.provider_timeout_seconds
        self.clock = clock or (lambda: datetime.now(pytz.UTC))

    async def sync_user(self, user_id: str) -> SyncResult:
        """Reconcile every active connection of the user"""
        result = SyncResult()
        connections = await self.connection_repo.get_by_user(user_id, active_only=True)

        for connection in connections:
            await self._sync_connection(connection, result)

        logger.info(
            f"Sync for user {user_id}: {len(connections)} connections, {result.imported} imported, "
            f"{result.exported} exported, {len(result.errors)} errors"
        )
        return result

    async def _sync_connection(self, connection: CalendarConnection, result: SyncResult) -> None:
        provider = connection.provider
        entry = self.registry.get(provider)
        if entry is None:
            await self._fail(connection, result, "Unsupported calendar provider")
            return

        direction = connection.sync_settings.sync_direction
        try:
            try:
                client = entry.client_factory(connection.access_token)
            except (ValueError, TypeError) as e:
                raise ConnectionSyncError(f"Could not create {provider} client: {e}")
            if direction in IMPORT_DIRECTIONS:
                await self._import(connection, client, entry.normalizer, result)
            if direction in EXPORT_DIRECTIONS:
                await self._export(connection, client, entry.normalizer, result)
        except ConnectionSyncError as e:
            await self._fail(connection, result, str(e))
            return

        # Taken after the pass so events written by it are not seen as local edits next time
        await self.connection_repo.mark_synced(connection.id, self.clock())
        logger.info(f"Synced {provider} connection {connection.id}")

    async def _fail(self, connection: CalendarConnection, result: SyncResult, message: str) -> None:
        logger.error(f"Sync failed for {connection.provider} connection {connection.id}: {message}")
        result.errors.append(f"{connection.provider}: {message}")
        await self.connection_repo.mark_sync_error(connection.id, message)

    async def _call(self, awaitable) -> Any:
        """Await one provider call under the per-call timeout"""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            raise ConnectionSyncError(f"Request timed out after {self.timeout_seconds:g}s")
        except CalendarProviderError as e:
            raise ConnectionSyncError(e.message)
        except (ValueError, KeyError, TypeError) as e:
            raise ConnectionSyncError(f"Unexpected provider response: {type(e).__name__}: {e}")

    def _import_window(self, connection: CalendarConnection):
        now = self.clock()
        since = as_utc(connection.last_sync_at) if connection.last_sync_at else now - timedelta(days=settings.sync_lookback_days)
        return since - timedelta(minutes=settings.sync_grace_minutes), now + timedelta(days=settings.sync_future_days)

    def _changed_locally(self, event, connection: CalendarConnection) -> bool:
        if connection.last_sync_at is None or event.updated_at is None:
            return False
        return as_utc(event.updated_at) > as_utc(connection.last_sync_at)

    async def _import(
        self,
        connection: CalendarConnection,
        client: CalendarProviderClient,
        normalizer: EventNormalizer,
        result: SyncResult
    ) -> None:
        provider = connection.provider
        policy = connection.sync_settings.conflict_resolution
        time_min, time_max = self._import_window(connection)
        raw_events = await self._call(client.list_events(connection.provider_calendar_id, time_min, time_max))

        for raw in raw_events:
            try:
                fields = normalizer.to_local(raw)
            except (ValueError, KeyError, TypeError) as e:
                raw_id = raw.get("id") if isinstance(raw, dict) else None
                logger.warning(f"Skipping malformed {provider} event {raw_id}: {e}")
                result.errors.append(f"{provider}: skipped event {raw_id}: {e}")
                continue

            external_id = fields.pop("external_id")
            existing = await self.event_repo.find_by_external_id(connection.user_id, provider, external_id)

            if existing is None and "start" not in fields:
                continue

            if existing is not None and policy in ("local_wins", "manual") and self._changed_locally(existing, connection):
                if policy == "manual":
                    result.conflicts.append(f"{provider}: event {external_id} changed both locally and remotely")
                logger.debug(f"Keeping local version of {provider} event {external_id}")
                continue

            fields["updated_at"] = self.clock()
            await self.event_repo.upsert_external_event(
                connection.user_id, provider, external_id, fields, connection_id=connection.id
            )
            result.imported += 1

    async def _export(
        self,
        connection: CalendarConnection,
        client: CalendarProviderClient,
        normalizer: EventNormalizer,
        result: SyncResult
    ) -> None:
        provider = connection.provider
        for event in await self.event_repo.get_unexported_events(connection.user_id):
            try:
                payload = normalizer.to_provider(event)
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                raise ConnectionSyncError(f"Could not convert event {event.id}: {e}")
            external_id = await self._call(client.create_event(connection.provider_calendar_id, payload))
            await self.event_repo.set_external_id(event.id, provider, external_id)
            result.exported += 1
            logger.debug(f"Exported event {event.id} to {provider} as {external_id}")
