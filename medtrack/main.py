import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from medtrack.api.routes_adherence import router as adherence_router
from medtrack.api.routes_medications import router as medications_router
from medtrack.api.routes_prescriptions import router as prescriptions_router
from medtrack.core.logging_config import configure_logging

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Medication Tracker (schedule + adherence + prescriptions)", version="1.0")

app.include_router(medications_router)
app.include_router(adherence_router)
app.include_router(prescriptions_router)

@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.error("Unexpected error on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})

@app.get("/health")
def health():
    return {"ok": True}
@app.get("/")
def root():
    return {"ok": True, "service": "Medication Tracker (schedule + adherence + prescriptions)"}
