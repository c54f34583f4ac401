"""Change feed and client-side reconciliation.

Every flush that touches a task, a share or a chat message writes one
``change_event`` row per object in the same transaction, so the feed never
reports a change that was rolled back and never misses one that committed.
Event ids double as the cursor consumers poll from.

A ``Reconciler`` keeps a local projection of one stream. Notifications are
applied at most once even when the feed redelivers them, and a cursor that
fell behind the retained events forces a full reload before incremental
updates resume.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy import event, func, inspect
from sqlalchemy.orm import Session

from errors import InvalidState
from models import db, ChangeEvent, ChatMessage, Task, TaskShare, isoformat, utcnow

logger = logging.getLogger(__name__)

TRACKED_MODELS = (Task, TaskShare, ChatMessage)
OPERATIONS = ('INSERT', 'UPDATE', 'DELETE')


class FeedGap(Exception):
    """Events after the cursor were pruned; the consumer must reload."""

    def __init__(self, cursor, floor):
        super().__init__(f'Events after cursor {cursor} were pruned (oldest retained: {floor})')
        self.cursor = cursor
        self.floor = floor


@dataclass
class FeedEvent:
    id: int
    table: str
    operation: str
    row: Dict[str, Any]
    created_at: Optional[str] = None

    def to_dict(self):
        return {
            'id': self.id,
            'table': self.table,
            'operation': self.operation,
            'new': self.row,
            'created_at': self.created_at,
        }


def snapshot(obj, deleted=False):
    state = inspect(obj)
    row = {}
    for attr in state.mapper.column_attrs:
        if deleted:
            # The row is gone; only what is already loaded can be read
            value = state.dict.get(attr.key)
        else:
            value = getattr(obj, attr.key)
        if isinstance(value, (datetime, date)):
            value = isoformat(value)
        row[attr.key] = value
    return row


def _outbox_row(obj, operation, deleted=False):
    return {
        'table_name': obj.__table__.name,
        'operation': operation,
        'row': snapshot(obj, deleted=deleted),
        'created_at': utcnow(),
    }


@event.listens_for(Session, 'before_flush')
def _load_deleted(session, flush_context, instances):
    # Rows about to be deleted can't be read back once the flush ran
    for obj in session.deleted:
        if isinstance(obj, TRACKED_MODELS):
            for attr in inspect(obj).mapper.column_attrs:
                getattr(obj, attr.key)


@event.listens_for(Session, 'after_flush')
def _write_outbox(session, flush_context):
    rows = []
    for obj in sorted((o for o in session.new if isinstance(o, TRACKED_MODELS)),
                      key=lambda o: (o.__table__.name, o.id)):
        rows.append(_outbox_row(obj, 'INSERT'))
    for obj in session.dirty:
        if isinstance(obj, TRACKED_MODELS) and session.is_modified(obj, include_collections=False):
            rows.append(_outbox_row(obj, 'UPDATE'))
    for obj in session.deleted:
        if isinstance(obj, TRACKED_MODELS):
            rows.append(_outbox_row(obj, 'DELETE', deleted=True))
    if rows:
        session.connection().execute(ChangeEvent.__table__.insert(), rows)


def _matches(row, filters):
    return all(row.get(column) == value for column, value in filters.items())


class ChangeFeed:
    def __init__(self, batch_size=100):
        self.batch_size = batch_size
        self._subscriptions = set()

    def head(self):
        return db.session.query(func.max(ChangeEvent.id)).scalar() or 0

    def floor(self):
        return db.session.query(func.min(ChangeEvent.id)).scalar()

    def read(self, cursor, table, filters=None, operations=None, limit=None):
        """Return ``(events, next_cursor)`` for events after ``cursor``."""
        floor = self.floor()
        if floor is not None and cursor < floor - 1:
            raise FeedGap(cursor, floor)

        query = ChangeEvent.query.filter(ChangeEvent.id > cursor, ChangeEvent.table_name == table)
        if operations:
            query = query.filter(ChangeEvent.operation.in_(operations))
        scanned = query.order_by(ChangeEvent.id.asc()).limit(limit or self.batch_size).all()

        events = [FeedEvent(id=e.id, table=e.table_name, operation=e.operation, row=e.row,
                            created_at=isoformat(e.created_at))
                  for e in scanned if _matches(e.row, filters or {})]
        next_cursor = scanned[-1].id if scanned else cursor
        return events, next_cursor

    def subscribe(self, table, filters=None, operations=None, cursor=None):
        subscription = Subscription(
            self, table,
            filters=filters or {},
            operations=tuple(operations or OPERATIONS),
            cursor=self.head() if cursor is None else cursor,
        )
        self._subscriptions.add(subscription)
        return subscription

    def unsubscribe(self, subscription):
        self._subscriptions.discard(subscription)

    @property
    def open_subscriptions(self):
        return len(self._subscriptions)

    def prune(self, keep):
        """Drop all but the newest ``keep`` events; at least one is always kept."""
        keep = max(int(keep), 1)
        cutoff = self.head() - keep
        if cutoff <= 0:
            return 0
        removed = ChangeEvent.query.filter(ChangeEvent.id <= cutoff).delete(synchronize_session=False)
        db.session.commit()
        logger.info('Pruned %d change events (kept newest %d)', removed, keep)
        return removed


class Subscription:
    def __init__(self, feed, table, filters, operations, cursor):
        self.feed = feed
        self.table = table
        self.filters = filters
        self.operations = operations
        self.cursor = cursor
        self.closed = False

    def poll(self) -> List[FeedEvent]:
        if self.closed:
            raise InvalidState('Subscription is closed')
        events, self.cursor = self.feed.read(self.cursor, self.table, self.filters, self.operations)
        return events

    def seek(self, cursor):
        self.cursor = cursor

    def close(self):
        if not self.closed:
            self.closed = True
            self.feed.unsubscribe(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class Reconciler:
    """Local ordered projection of one stream.

    Entries are matched by ``id`` when the row has one, otherwise by
    ``created_at`` plus ``content_fields``. ``transform`` maps a feed row
    to the projection's shape; returning None means the row does not belong
    in the projection (and removes it if present).
    """

    def __init__(self, loader: Callable[[], Iterable[dict]], subscription: Subscription = None,
                 content_fields=(), transform: Callable[[dict], Optional[dict]] = None,
                 on_change: Callable[['Reconciler'], Any] = None):
        self.loader = loader
        self.subscription = subscription
        self.content_fields = tuple(content_fields)
        self.transform = transform or (lambda row: row)
        self.on_change = on_change
        self.items: List[dict] = []
        self._by_id = {}
        self._by_content = {}
        self._last_event_id = None

    def _content_key(self, row):
        if not self.content_fields:
            return None
        return (row.get('created_at'),) + tuple(row.get(f) for f in self.content_fields)

    def _find(self, row):
        if row.get('id') is not None and row['id'] in self._by_id:
            return self._by_id[row['id']]
        key = self._content_key(row)
        return self._by_content.get(key) if key else None

    def _index(self, item):
        if item.get('id') is not None:
            self._by_id[item['id']] = item
        key = self._content_key(item)
        if key:
            self._by_content[key] = item

    def _unindex(self, item):
        if item.get('id') is not None:
            self._by_id.pop(item['id'], None)
        key = self._content_key(item)
        if key:
            self._by_content.pop(key, None)

    def _add(self, item):
        self.items.append(item)
        self._index(item)

    def _remove(self, item):
        self.items = [i for i in self.items if i is not item]
        self._unindex(item)

    def _replace(self, old, new):
        self.items = [new if i is old else i for i in self.items]
        self._unindex(old)
        self._index(new)

    def __contains__(self, row):
        return self._find(row) is not None

    def __len__(self):
        return len(self.items)

    def _changed(self):
        if self.on_change:
            self.on_change(self)

    def apply(self, event: FeedEvent) -> bool:
        """Merge one notification; returns whether the projection changed."""
        # Feed ids only grow, so anything at or below the mark was already seen
        if self._last_event_id is not None and event.id <= self._last_event_id:
            return False
        self._last_event_id = event.id

        item = None if event.operation == 'DELETE' else self.transform(event.row)
        if item is None:
            existing = self._find(event.row)
            if existing is None:
                return False
            self._remove(existing)
        else:
            existing = self._find(item)
            if event.operation == 'INSERT' and existing is not None:
                return False
            if existing is None:
                self._add(item)
            elif existing == item:
                return False
            else:
                self._replace(existing, item)
        self._changed()
        return True

    def resync(self):
        """Reload full state; events after the pre-load head are replayed by the next sync."""
        head = self.subscription.feed.head() if self.subscription else None
        self.items = []
        self._by_id = {}
        self._by_content = {}
        self._last_event_id = head
        for item in self.loader():
            self._add(item)
        if self.subscription:
            self.subscription.seek(head)
        self._changed()
        return self

    def sync(self):
        """Pull pending notifications; returns how many changed the projection."""
        if self.subscription is None:
            return 0
        try:
            events = self.subscription.poll()
        except FeedGap as gap:
            logger.info('Change feed gap on %s: %s', self.subscription.table, gap)
            self.resync()
            return len(self.items)
        return sum(1 for e in events if self.apply(e))

    def close(self):
        if self.subscription:
            self.subscription.close()


feed = ChangeFeed()
