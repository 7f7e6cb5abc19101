"""
FastAPI endpoints for the warehouse scanner.
"""

import logging
import os
from typing import Optional

from fastapi import Depends, FastAPI, Header, Query
from fastapi.responses import JSONResponse
import uvicorn

from constants.schemas import ConversionRequest, ExportRequest, SyncRequest
from utils.audit_log import AuditLog
from utils.catalog import ProductCatalog
from utils.conversion import compute_conversion, same_unit
from utils.errors import WarehouseError
from utils.google_sheets import SheetsLedgerStore
from utils.location_codes import all_location_codes
from utils.lot_export import LotExporter
from utils.lots import get_occupied_positions, load_lot_lines, lot_lines_payload
from utils.occupancy import summarize_occupancy, unknown_positions
from utils.position_sync import PositionReconciler

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

# Make sure the core loggers are also set to INFO level
logging.getLogger('utils.position_sync').setLevel(logging.INFO)
logging.getLogger('utils.lot_export').setLevel(logging.INFO)
logging.getLogger('utils.google_sheets').setLevel(logging.INFO)
logging.getLogger('googleapiclient.discovery_cache').setLevel(logging.ERROR)

# Create FastAPI app
app = FastAPI(
    title="Warehouse Scanner API",
    description="Lot position sync and lot export against the warehouse spreadsheet",
    version="1.0.0"
)

_store = None


def get_store():
    """Shared ledger store, built on first use."""
    global _store
    if _store is None:
        _store = SheetsLedgerStore()
    return _store


@app.exception_handler(WarehouseError)
async def warehouse_error_handler(request, exc: WarehouseError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/")
async def root():
    """Health check endpoint"""
    return {"message": "Warehouse Scanner API is running", "status": "healthy"}


@app.get("/api/health")
async def health_check():
    """Detailed health check with configuration flags"""
    return {
        "status": "healthy",
        "environment": {
            "sheet_id": bool(os.environ.get('SHEET_ID')),
            "service_account": bool(
                os.environ.get('GOOGLE_SERVICE_ACCOUNT_EMAIL') and os.environ.get('GOOGLE_SERVICE_ACCOUNT_KEY')
            ),
            "google_credentials_file": bool(os.environ.get('GOOGLE_APPLICATION_CREDENTIALS')),
        },
    }


@app.post("/api/scanner/sync")
def sync_positions(
    body: SyncRequest,
    x_user: Optional[str] = Header(default=None),
    store=Depends(get_store),
):
    """
    Apply position assignments queued by the scanner, one item at a time.
    """
    if not body.items:
        return JSONResponse(status_code=400, content={"error": "No items to sync"})

    username = body.username or x_user or ""
    logger.info(f"🚀 Scanner sync from '{username or 'anonymous'}' with {len(body.items)} items")
    try:
        reconciler = PositionReconciler(store, audit=AuditLog(store))
        result = reconciler.sync_assignments(body.items, username=username)
    except Exception as e:
        logger.exception(f"❌ Sync error: {e}")
        return JSONResponse(status_code=500, content={"error": str(e) or "SYNC_FAILED"})
    return result.model_dump(by_alias=True)


@app.get("/api/scanner/occupied")
def occupied_positions(store=Depends(get_store)):
    try:
        data = get_occupied_positions(store)
    except Exception as e:
        logger.error(f"Failed to fetch occupied positions: {e}")
        return JSONResponse(status_code=500, content={"ok": False, "message": "Failed to fetch occupied positions"})
    return {"ok": True, **data}


@app.get("/api/scanner/locations")
async def locations():
    return {"ok": True, "locations": all_location_codes()}


@app.get("/api/lots/{code}/lines")
def lot_lines(code: str, store=Depends(get_store)):
    lot_code = code.strip()
    if not lot_code:
        return {"items": [], "header": None}
    try:
        lines = load_lot_lines(store, lot_code)
    except WarehouseError:
        raise
    except Exception as e:
        logger.error(f"Failed to read lot {lot_code}: {e}")
        return JSONResponse(status_code=500, content={"error": str(e) or "GET_LOT_LINES_FAILED"})
    return lot_lines_payload(lines)


@app.post("/api/lots/export")
def export_lot(body: ExportRequest, store=Depends(get_store)):
    """
    Export a lot: FULL moves every line to the deletion ledger, PARTIAL takes
    the selected quantities (with unit conversion) and keeps the rest.
    """
    exporter = LotExporter(store, catalog=ProductCatalog(store), audit=AuditLog(store))
    try:
        result = exporter.export_lot(
            body.lot_code,
            mode=body.mode,
            reason=body.reason,
            selections=body.items,
            deleted_by=body.deleted_by,
        )
    except WarehouseError:
        raise
    except Exception as e:
        logger.exception(f"❌ Export LOT error: {e}")
        return JSONResponse(status_code=500, content={"error": str(e) or "EXPORT_LOT_FAILED"})
    return result.model_dump(by_alias=True)


@app.get("/api/products")
def products(include_disabled: bool = Query(False, alias="includeDisabled"), store=Depends(get_store)):
    try:
        items = ProductCatalog(store).list_visible(include_disabled=include_disabled)
    except Exception as e:
        logger.error(f"Failed to list products: {e}")
        return JSONResponse(status_code=500, content={"ok": False, "error": str(e)})
    return {"ok": True, "products": items}


@app.post("/api/conversion")
def conversion_preview(body: ConversionRequest, store=Depends(get_store)):
    """Preview what an export would consume, without writing anything."""
    product = None
    if not same_unit(body.export_unit or body.current_unit, body.current_unit):
        product = ProductCatalog(store).get_product(body.product_code)
    result = compute_conversion(body.current_qty, body.current_unit, body.export_qty, body.export_unit, product)
    return {
        "ok": True,
        "consumed": float(result.consumed),
        "remainder": float(result.remainder),
        "isValid": result.is_valid,
        "available": float(result.available),
        "currentUnit": result.current_unit,
        "exportUnit": result.export_unit,
    }


@app.get("/api/warehouse/occupancy")
def warehouse_occupancy(store=Depends(get_store)):
    occupied = get_occupied_positions(store)["occupied"]
    return {
        "ok": True,
        "zones": summarize_occupancy(occupied),
        "unknownPositions": unknown_positions(occupied),
    }


@app.get("/api/audit")
def audit_entries(limit: int = Query(100, ge=1, le=1000), store=Depends(get_store)):
    return {"ok": True, "items": AuditLog(store).list_recent(limit)}


if __name__ == "__main__":
    # This allows running the API standalone for testing
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get('PORT', 8080)))
