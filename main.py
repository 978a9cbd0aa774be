from src.config.settings import settings
from src.database.connection import initialize_firebase

if settings.STORE_BACKEND == "firestore":
    initialize_firebase()

from fastapi import FastAPI
from src.api.events.routes import events_router
from src.api.maintenance.routes import maintenance_router
from src.middleware.error import http_exception_handler
from src.middleware.timing import add_process_time_header
from src.shared.exceptions import AutomationError
from src.shared.utils import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="BriskIT Automation",
    description="Runner assignment, counter maintenance and notifications for BriskIT orders.",
    version="1.0.0",
)

app.include_router(events_router)
app.include_router(maintenance_router)

app.add_exception_handler(AutomationError, http_exception_handler)
app.add_exception_handler(Exception, http_exception_handler)

app.middleware("http")(add_process_time_header)


@app.get("/", tags=["App"])
async def read_root():
    return {"service": "briskit-automation", "store": settings.STORE_BACKEND}
