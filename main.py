# main.py

import asyncio
import logging
import sys
import os
from contextlib import asynccontextmanager
from dotenv import load_dotenv

# Loaded before the local imports: models.py reads DATABASE_URL at import time
load_dotenv()

# --- FastAPI & Uvicorn ---
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
import uvicorn

# --- Local imports ---
from models import create_db_tables, async_session_maker
from notification_manager import check_expiring_stock
from websocket_manager import manager
from admin_deals import router as admin_deals_router
from pos_orders import router as pos_router
from admin_order_management import router as admin_order_router
from admin_inventory import router as admin_inventory_router
from admin_suppliers import router as admin_suppliers_router
from admin_delivery import router as admin_delivery_router
from admin_notifications import router as admin_notifications_router
from admin_reports import router as admin_reports_router

logger = logging.getLogger(__name__)


async def expiry_watch(interval: int):
    """Scans purchases for expiring batches every `interval` seconds."""
    while True:
        try:
            async with async_session_maker() as session:
                created = await check_expiring_stock(session)
            if created:
                logger.info(f"Expiry scan created {len(created)} notification(s)")
        except Exception as e:
            logger.error(f"Expiry scan failed: {e}", exc_info=True)
        await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up...")
    await create_db_tables()

    interval = int(os.environ.get('EXPIRY_CHECK_INTERVAL', '21600'))
    expiry_task = asyncio.create_task(expiry_watch(interval)) if interval > 0 else None
    yield
    logger.info("Shutting down...")
    if expiry_task:
        expiry_task.cancel()
        try:
            await expiry_task
        except asyncio.CancelledError:
            logger.info("Expiry watch stopped.")


app = FastAPI(title="Restaurant POS", lifespan=lifespan)

app.include_router(admin_deals_router)
app.include_router(pos_router)
app.include_router(admin_order_router)
app.include_router(admin_inventory_router)
app.include_router(admin_suppliers_router)
app.include_router(admin_delivery_router)
app.include_router(admin_notifications_router)
app.include_router(admin_reports_router)


@app.websocket("/ws/admin")
async def admin_websocket(websocket: WebSocket):
    await manager.connect_admin(websocket)
    try:
        while True:
            # Dashboards only listen; incoming text is a keep-alive
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect_admin(websocket)


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, stream=sys.stdout)
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
