"""FastAPI dependencies exposing the components built at startup."""

from __future__ import annotations

from fastapi import Request

from ..mappings import MappingSummaryCache
from ..query_builder import VisibilityScopedQueryBuilder
from ..reconciler import DocumentReconciler
from ..search import SearchExecutor


def get_store(request: Request):
    return request.app.state.store


def get_mapping_cache(request: Request) -> MappingSummaryCache:
    return request.app.state.mapping_cache


def get_reconciler(request: Request) -> DocumentReconciler:
    return request.app.state.reconciler


def get_query_builder(request: Request) -> VisibilityScopedQueryBuilder:
    return request.app.state.query_builder


def get_executor(request: Request) -> SearchExecutor:
    return request.app.state.executor
