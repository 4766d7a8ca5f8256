"""Shared fixtures: an in-memory stand-in for the async index store client."""

from __future__ import annotations

import asyncio
import copy
import re

import pytest
from fastapi.testclient import TestClient
from opensearchpy.exceptions import ConnectionError as StoreConnectionError
from opensearchpy.exceptions import NotFoundError

TASKS = "tasks"
ORGS = "organizations"


def _text_with_keyword() -> dict:
    return {"type": "text", "fields": {"keyword": {"type": "keyword", "ignore_above": 256}}}


KEYWORD_MAPPINGS = {
    TASKS: {
        "mappings": {
            "properties": {
                "title": _text_with_keyword(),
                "description": {"type": "text"},
                "userEmail": _text_with_keyword(),
                "docType": {"type": "keyword"},
            }
        }
    },
    ORGS: {
        "mappings": {
            "properties": {
                "name": _text_with_keyword(),
                "slug": {"type": "keyword"},
                "docType": {"type": "keyword"},
                "members": {
                    "properties": {
                        "email": _text_with_keyword(),
                        "name": {"type": "text"},
                    }
                },
                "teams": {"properties": {"name": {"type": "text"}}},
            }
        }
    },
}

TEXT_ONLY_MAPPINGS = {
    TASKS: {
        "mappings": {
            "properties": {
                "title": {"type": "text"},
                "userEmail": {"type": "text"},
                "docType": {"type": "text"},
            }
        }
    },
    ORGS: {
        "mappings": {
            "properties": {
                "name": {"type": "text"},
                "docType": {"type": "text"},
                "members": {"properties": {"email": {"type": "text"}}},
            }
        }
    },
}

NESTED_MAPPINGS = {
    TASKS: KEYWORD_MAPPINGS[TASKS],
    ORGS: {
        "mappings": {
            "properties": {
                "name": _text_with_keyword(),
                "docType": {"type": "keyword"},
                "members": {
                    "type": "nested",
                    "properties": {
                        "email": _text_with_keyword(),
                        "name": {"type": "text"},
                    },
                },
            }
        }
    },
}


def run(coro):
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Query evaluation (the subset the query builder emits)
# ---------------------------------------------------------------------------

def _tokens(value) -> list[str]:
    return re.findall(r"[a-z0-9]+", str(value).lower())


def _values(source: dict, path: str) -> list:
    current = [source]
    for segment in path.split("."):
        found = []
        for item in current:
            if isinstance(item, dict) and segment in item:
                value = item[segment]
                found.extend(value if isinstance(value, list) else [value])
        current = found
    return [v for v in current if v is not None]


def _exact_values(source: dict, path: str) -> list:
    values = _values(source, path)
    if not values and path.endswith(".keyword"):
        values = _values(source, path[: -len(".keyword")])
    return values


def _field_tokens(source: dict, path: str) -> list[str]:
    tokens: list[str] = []
    for value in _values(source, path):
        tokens.extend(_tokens(value))
    return tokens


def _term_matches(term: str, field_tokens: list[str]) -> bool:
    prefix = term.endswith("*")
    parts = _tokens(term)
    if not parts:
        return True
    *whole, last = parts
    if any(p not in field_tokens for p in whole):
        return False
    if prefix:
        return any(t.startswith(last) for t in field_tokens)
    return last in field_tokens


def _simple_query_string(source: dict, spec: dict) -> tuple[bool, float]:
    fields = []
    for f in spec["fields"]:
        name, _, boost = f.partition("^")
        fields.append((name, float(boost or 1)))
    score = 0.0
    for term in spec["query"].split():
        term_score = 0.0
        for name, boost in fields:
            if _term_matches(term, _field_tokens(source, name)):
                term_score += boost
        if term_score == 0:
            return False, 0.0
        score += term_score
    return True, score


def _phrase_in(phrase: list[str], tokens: list[str]) -> bool:
    """Whether *phrase* occurs as consecutive tokens of a single value."""
    width = len(phrase)
    return any(tokens[i:i + width] == phrase for i in range(len(tokens) - width + 1))


def _place(path: str, item) -> dict:
    """Rebuild a one-object source so full field paths resolve against *item*."""
    node = item
    for segment in reversed(path.split(".")):
        node = {segment: node}
    return node


def evaluate(query: dict, source: dict) -> tuple[bool, float]:
    (kind, spec), = query.items()
    if kind == "bool":
        score = 0.0
        for clause in spec.get("must", []):
            ok, s = evaluate(clause, source)
            if not ok:
                return False, 0.0
            score += s
        for clause in spec.get("filter", []):
            if not evaluate(clause, source)[0]:
                return False, 0.0
        for clause in spec.get("must_not", []):
            if evaluate(clause, source)[0]:
                return False, 0.0
        should = spec.get("should", [])
        if should:
            matched = [evaluate(c, source) for c in should]
            hits = [s for ok, s in matched if ok]
            minimum = spec.get("minimum_should_match", 0 if spec.get("must") else 1)
            if len(hits) < minimum:
                return False, 0.0
            score += sum(hits)
        return True, score
    if kind == "simple_query_string":
        return _simple_query_string(source, spec)
    if kind == "term":
        (path, value), = spec.items()
        if isinstance(value, dict):
            value = value["value"]
        return value in _exact_values(source, path), 0.0
    if kind == "match_phrase":
        (path, value), = spec.items()
        text = value["query"] if isinstance(value, dict) else value
        return any(_phrase_in(_tokens(text), _tokens(v)) for v in _values(source, path)), 0.0
    if kind == "nested":
        path = spec["path"]
        for item in _values(source, path):
            if evaluate(spec["query"], _place(path, item))[0]:
                return True, 0.0
        return False, 0.0
    raise AssertionError(f"unsupported query clause {kind}")


# ---------------------------------------------------------------------------
# Fake store
# ---------------------------------------------------------------------------

def _down(op: str) -> StoreConnectionError:
    return StoreConnectionError("N/A", f"{op}: store unreachable", None)


class FakeIndices:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    async def refresh(self, index: str):
        self.store.calls.append(("refresh", index))
        if "refresh" in self.store.failing:
            raise _down("refresh")
        return {"_shards": {"failed": 0}}

    async def get_mapping(self, index: str):
        self.store.calls.append(("get_mapping", index))
        if "get_mapping" in self.store.failing:
            raise _down("get_mapping")
        result = {}
        for name in index.split(","):
            concrete = self.store.aliases.get(name, name)
            if concrete not in self.store.mappings:
                raise NotFoundError(404, "index_not_found_exception", {"index": name})
            result[concrete] = copy.deepcopy(self.store.mappings[concrete])
        return result


class FakeStore:
    """Implements the async client calls used by flashsearch, in memory."""

    def __init__(self, mappings: dict | None = None) -> None:
        self.docs: dict[str, dict[str, dict]] = {}
        self.mappings = mappings if mappings is not None else copy.deepcopy(KEYWORD_MAPPINGS)
        self.aliases: dict[str, str] = {}
        self.calls: list[tuple] = []
        self.failing: set[str] = set()
        self.indices = FakeIndices(self)

    def ops(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]

    async def get(self, index: str, id: str):
        self.calls.append(("get", index, id))
        if "get" in self.failing:
            raise _down("get")
        source = self.docs.get(index, {}).get(id)
        if source is None:
            raise NotFoundError(404, "not_found", {"_index": index, "_id": id, "found": False})
        return {"_index": index, "_id": id, "found": True, "_source": copy.deepcopy(source)}

    async def index(self, index: str, id: str, body: dict):
        self.calls.append(("index", index, id))
        if "index" in self.failing:
            raise _down("index")
        self.docs.setdefault(index, {})[id] = copy.deepcopy(body)
        return {"_index": index, "_id": id, "result": "created"}

    async def delete(self, index: str, id: str):
        self.calls.append(("delete", index, id))
        if "delete" in self.failing:
            raise _down("delete")
        if id not in self.docs.get(index, {}):
            raise NotFoundError(404, "not_found", {"_index": index, "_id": id})
        del self.docs[index][id]
        return {"_index": index, "_id": id, "result": "deleted"}

    async def search(self, index: str, body: dict):
        self.calls.append(("search", index, body))
        if "search" in self.failing:
            raise _down("search")
        hits = []
        for name in index.split(","):
            for doc_id, source in self.docs.get(name, {}).items():
                ok, score = evaluate(body["query"], source)
                if ok:
                    hits.append({
                        "_index": name,
                        "_id": doc_id,
                        "_score": score,
                        "_source": copy.deepcopy(source),
                    })
        hits.sort(key=lambda h: h["_score"], reverse=True)
        return {"hits": {"total": {"value": len(hits)}, "hits": hits[: body.get("size", 10)]}}

    async def close(self):
        self.calls.append(("close",))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def store():
    return FakeStore()


@pytest.fixture()
def text_only_store():
    return FakeStore(copy.deepcopy(TEXT_ONLY_MAPPINGS))


@pytest.fixture()
def app_config(monkeypatch):
    monkeypatch.setattr("flashsearch.config.TASKS_INDEX", TASKS)
    monkeypatch.setattr("flashsearch.config.ORGANIZATIONS_INDEX", ORGS)
    monkeypatch.setattr("flashsearch.config.WEBHOOK_SECRET", "")
    monkeypatch.setattr("flashsearch.config.REFRESH_AFTER_WRITE", True)
    monkeypatch.setattr("flashsearch.config.SEARCH_DEFAULT_LIMIT", 10)
    monkeypatch.setattr("flashsearch.config.SEARCH_MAX_LIMIT", 50)


def _make_client(store):
    from flashsearch.web.app import create_app
    app = create_app(store=store)
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture()
def client(store, app_config):
    return _make_client(store)


@pytest.fixture()
def make_client(app_config):
    return _make_client
