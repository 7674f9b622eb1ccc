import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Depends, Request, BackgroundTasks, status
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from .availability import AvailabilityStore, check_connection, create_engine_from_env, create_schema
from .errors import ErrorKind, InternalError, SchedulingError, SlotNotFound
from .models import AppointmentView, BookRequest, Slot
from .scheduling import Scheduler

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

API_KEY = os.getenv("AGENDA_API_KEY", "")
# HTTPBearer scheme so Swagger-UI can attach the Authorization header globally
auth_scheme = HTTPBearer(auto_error=False)

_STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UPSTREAM: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

@asynccontextmanager
async def lifespan(app: FastAPI):
    # one pooled engine per process, released at shutdown
    engine = create_engine_from_env()
    await check_connection(engine)
    if os.getenv("DB_CREATE_SCHEMA", "0") == "1":
        await create_schema(engine)
    app.state.scheduler = Scheduler(AvailabilityStore(engine))
    try:
        yield
    finally:
        await engine.dispose()

app = FastAPI(title="Agenda Service", lifespan=lifespan)

def verify_api_key(credentials: HTTPAuthorizationCredentials = Depends(auth_scheme)):
    """Validate Bearer token when AGENDA_API_KEY is configured"""
    if not API_KEY:
        return
    if credentials is None or credentials.scheme.lower() != "bearer" or credentials.credentials != API_KEY:
        raise HTTPException(status_code=401, detail="Invalid API key")

def get_scheduler(request: Request) -> Scheduler:
    return request.app.state.scheduler

@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    return JSONResponse(
        status_code=_STATUS_BY_KIND[exc.kind],
        content={"detail": exc.message, "kind": exc.kind.value},
    )

@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Error inesperado en %s %s", request.method, request.url.path)
    err = InternalError()
    return JSONResponse(status_code=500, content={"detail": err.message, "kind": err.kind.value})

# Availability endpoints ------------------------------------------------------

@app.get("/disponibilidad/{dni}", dependencies=[Depends(verify_api_key)], response_model=list[Slot])
async def list_availability(dni: str, scheduler: Scheduler = Depends(get_scheduler)):
    """Return every open slot of a doctor."""
    return await scheduler.store.list_slots(dni)

@app.post("/disponibilidad/{dni}", dependencies=[Depends(verify_api_key)], response_class=PlainTextResponse)
async def add_availability(dni: str, slot: Slot, scheduler: Scheduler = Depends(get_scheduler)):
    await scheduler.store.add_slot(dni, slot)
    return "Disponibilidad agregada con éxito"

@app.delete("/disponibilidad/{dni}", dependencies=[Depends(verify_api_key)], response_class=PlainTextResponse)
async def remove_availability(dni: str, slot: Slot, scheduler: Scheduler = Depends(get_scheduler)):
    if not await scheduler.store.remove_slot(dni, slot):
        raise SlotNotFound()
    return "Disponibilidad eliminada con éxito"

# Appointment endpoints -------------------------------------------------------

@app.post(
    "/agendar",
    dependencies=[Depends(verify_api_key)],
    response_class=PlainTextResponse,
    status_code=status.HTTP_201_CREATED,
)
async def book(req: BookRequest, background: BackgroundTasks, scheduler: Scheduler = Depends(get_scheduler)):
    """Book an appointment. The used slot is removed after the response is sent."""
    await scheduler.book(req)
    background.add_task(scheduler.consume_slot, req.dni_doctor, Slot(dia=req.dia, hora=req.hora))
    return "Cita agendada con éxito"

@app.delete("/cancelar/{appt_id}", dependencies=[Depends(verify_api_key)], response_class=PlainTextResponse)
async def cancel(appt_id: str, scheduler: Scheduler = Depends(get_scheduler)):
    """Cancel an appointment and restore the doctor's slot."""
    await scheduler.cancel(appt_id)
    return "Cita cancelada y disponibilidad restaurada con éxito"

@app.get("/{dni_paciente}", dependencies=[Depends(verify_api_key)], response_model=list[AppointmentView])
async def list_appointments(dni_paciente: str, scheduler: Scheduler = Depends(get_scheduler)):
    """Return a patient's appointments with their doctor's details."""
    return await scheduler.list_for_patient(dni_paciente)
