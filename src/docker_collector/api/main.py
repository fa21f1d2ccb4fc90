"""Read-only status API for dashboards."""

import time
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from ..config import settings
from ..models import INVENTORY_COLLECTIONS
from ..store import DocumentStore


def create_app(store: Optional[DocumentStore] = None) -> FastAPI:
    """Create the FastAPI application."""
    store = store or DocumentStore(settings.db_path, max_error_log=settings.max_error_log)

    app = FastAPI(
        title="Docker Collector API",
        description="Collector run metadata and collected Docker inventory",
        version="1.0.0",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("shutdown")
    def shutdown():
        store.close()

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "timestamp": time.time()}

    @app.get("/api/v1/collector")
    def collector_status(name: Optional[str] = None):
        """Run metadata of a collector (defaults to the configured name)."""
        name = name or settings.collector_name
        record = store.find_collector(name)
        if record is None:
            raise HTTPException(status_code=404, detail=f"Collector {name} is not registered")
        return record.to_document()

    @app.get("/api/v1/collectors/{collector_id}")
    def get_collector(collector_id: str):
        record = store.get_collector(collector_id)
        if record is None:
            raise HTTPException(status_code=404, detail=f"Collector {collector_id} not found")
        return record.to_document()

    @app.get("/api/v1/targets")
    def list_targets():
        """All configured collector items."""
        return [item.to_document() for item in store.list_collector_items()]

    @app.get("/api/v1/targets/{item_id}")
    def get_target(item_id: str):
        item = store.get_collector_item(item_id)
        if item is None:
            raise HTTPException(status_code=404, detail=f"Collector item {item_id} not found")
        return item.to_document()

    @app.get("/api/v1/inventory/{collection}")
    def list_inventory(
        collection: str,
        target: Optional[str] = Query(None, description="Only documents from this collector item"),
        limit: int = Query(100, ge=1, le=1000),
    ):
        """Collected documents of one inventory collection."""
        if collection not in INVENTORY_COLLECTIONS:
            raise HTTPException(status_code=404, detail=f"Unknown collection: {collection}")
        filters = {"collectorItemId": target} if target else None
        return store.find_all(collection, filters=filters, limit=limit)

    @app.get("/api/v1/inventory")
    def inventory_counts():
        """Document count per inventory collection."""
        return {collection: store.count(collection) for collection in INVENTORY_COLLECTIONS}

    return app
