"""In-memory stand-in for the Firestore client, for the test modules.

Supports the calls the services make: collection/document paths, add,
get, set, update (NotFound when missing), equality where, order_by,
limit, stream and collection_group. SERVER_TIMESTAMP is replaced by a
strictly increasing clock so ordering by createdAt is deterministic.
"""
import itertools
from datetime import datetime, timedelta, timezone

from firebase_admin import firestore
from google.api_core.exceptions import NotFound

_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeSnapshot:
    def __init__(self, ref, data):
        self.reference = ref
        self.id = ref.id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeDocument:
    def __init__(self, db, path):
        self._db = db
        self._path = path

    @property
    def id(self):
        return self._path[-1]

    @property
    def parent(self):
        return FakeCollection(self._db, self._path[:-1])

    def collection(self, name):
        return FakeCollection(self._db, self._path + (name,))

    def get(self):
        self._db._check()
        data = self._db.docs.get(self._path)
        return FakeSnapshot(self, dict(data) if data is not None else None)

    def set(self, data, merge=False):
        self._db._check()
        resolved = self._db._resolve(data)
        if merge and self._path in self._db.docs:
            self._db.docs[self._path].update(resolved)
        else:
            self._db.docs[self._path] = resolved

    def update(self, fields):
        self._db._check()
        if self._path not in self._db.docs:
            raise NotFound(f"No document to update: {'/'.join(self._path)}")
        self._db.docs[self._path].update(self._db._resolve(fields))


class FakeQuery:
    def __init__(self, db, source, filters=(), orders=(), limit=None):
        self._db = db
        self._source = source
        self._filters = tuple(filters)
        self._orders = tuple(orders)
        self._limit = limit

    def _copy(self, **changes):
        kwargs = {
            "filters": self._filters,
            "orders": self._orders,
            "limit": self._limit,
        }
        kwargs.update(changes)
        return FakeQuery(self._db, self._source, **kwargs)

    def where(self, field, op, value):
        if op != "==":
            raise NotImplementedError(op)
        return self._copy(filters=self._filters + ((field, value),))

    def order_by(self, field, direction="ASCENDING"):
        return self._copy(orders=self._orders + ((field, direction),))

    def limit(self, count):
        return self._copy(limit=count)

    def stream(self):
        self._db._check()
        self._db.queries.append(self._filters)

        rows = [
            (path, data) for path, data in self._source()
            if all(field in data and data[field] == value for field, value in self._filters)
        ]
        for field, direction in reversed(self._orders):
            # Firestore leaves out documents that lack an order_by field
            rows = [r for r in rows if field in r[1]]
            rows.sort(key=lambda r: r[1][field], reverse=direction == firestore.Query.DESCENDING)
        if self._limit is not None:
            rows = rows[:self._limit]

        return iter([FakeSnapshot(FakeDocument(self._db, p), dict(d)) for p, d in rows])

    def get(self):
        return list(self.stream())


class FakeCollection(FakeQuery):
    def __init__(self, db, path):
        super().__init__(db, lambda: db._children(path))
        self._path = path

    @property
    def id(self):
        return self._path[-1]

    @property
    def parent(self):
        if len(self._path) == 1:
            return None
        return FakeDocument(self._db, self._path[:-1])

    def document(self, doc_id=None):
        if doc_id is None:
            doc_id = f"doc{next(self._db._ids)}"
        return FakeDocument(self._db, self._path + (doc_id,))

    def add(self, data):
        ref = self.document()
        ref.set(data)
        return self._db._now(), ref


class FakeFirestore:
    def __init__(self):
        self.docs = {}
        # Filters of every query streamed, in order
        self.queries = []
        # Exception raised by every call while set
        self.fail_with = None
        self._clock = itertools.count(1)
        self._ids = itertools.count(1)

    def collection(self, name):
        return FakeCollection(self, (name,))

    def collection_group(self, name):
        return FakeQuery(self, lambda: [(p, d) for p, d in self.docs.items() if p[-2] == name])

    def seed(self, path, data):
        """Write a document directly, e.g. seed("users/u1", {...})."""
        self.docs[tuple(path.split("/"))] = self._resolve(data)

    def _children(self, path):
        return [
            (p, d) for p, d in self.docs.items()
            if len(p) == len(path) + 1 and p[:-1] == path
        ]

    def _now(self):
        return _EPOCH + timedelta(seconds=next(self._clock))

    def _resolve(self, data):
        return {
            k: self._now() if v is firestore.SERVER_TIMESTAMP else v
            for k, v in data.items()
        }

    def _check(self):
        if self.fail_with is not None:
            raise self.fail_with
