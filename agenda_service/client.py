"""Async clients for the patient directory, the doctor directory and the
appointment history service.

Every call translates a 404 from the remote service into the matching domain
not-found error and any other failure (HTTP error status or no response at
all) into ``UpstreamError``.
"""
from __future__ import annotations
import logging
import os
import httpx
from dotenv import load_dotenv
from pydantic import ValidationError
from .errors import (
    AppointmentNotFound,
    DoctorNotFound,
    NotFound,
    PatientNotFound,
    UpstreamError,
)
from .models import Appointment, BookRequest, Doctor

load_dotenv()

logger = logging.getLogger(__name__)

_PACIENTES_URL = os.getenv("PACIENTES_URL", "http://pacientes:8000/pacientes")
_DOCTORES_URL = os.getenv("DOCTORES_URL", "http://doctores:3000/doctors")
_CITAS_URL = os.getenv("CITAS_URL", "http://historiamedica:8080/citas")
_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "15"))

_HEADERS = {"Accept": "application/json"}


async def _send(
    method: str,
    url: str,
    not_found: type[NotFound] | None,
    failure: str,
    **kwargs,
) -> httpx.Response:
    """Issue one request and map transport failures onto domain errors."""
    try:
        async with httpx.AsyncClient(http2=True, timeout=_TIMEOUT) as client:
            resp = await client.request(method, url, headers=_HEADERS, **kwargs)
            resp.raise_for_status()
            return resp
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        if status == 404 and not_found is not None:
            logger.warning("%s %s -> 404", method, url)
            raise not_found() from exc
        logger.error("%s: %s %s -> %s", failure, method, url, status)
        raise UpstreamError(failure) from exc
    except httpx.RequestError as exc:
        # no response received
        logger.error("%s: %s %s sin respuesta (%s)", failure, method, url, exc)
        raise UpstreamError(failure) from exc


def _json_or_none(resp: httpx.Response):
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return None


# Patient / doctor directories ----------------------------------------------

async def fetch_patient(dni: str) -> dict:
    """Return the patient record; raises ``PatientNotFound`` when missing."""
    resp = await _send("GET", f"{_PACIENTES_URL}/{dni}", PatientNotFound, "Error al verificar el Paciente")
    payload = _json_or_none(resp)
    if not payload:
        raise PatientNotFound()
    logger.info("Paciente con DNI %s encontrado.", dni)
    return payload


async def fetch_doctor(dni: str) -> Doctor:
    """Return name and specialty of a doctor; raises ``DoctorNotFound`` when missing."""
    resp = await _send("GET", f"{_DOCTORES_URL}/{dni}", DoctorNotFound, "Error al verificar el doctor")
    payload = _json_or_none(resp)
    if not payload:
        raise DoctorNotFound()
    if not isinstance(payload, dict):
        logger.error("Respuesta inesperada del doctor %s: %r", dni, payload)
        raise UpstreamError("Error al verificar el doctor")
    try:
        return Doctor(
            nombres=payload.get("nombres"),
            apellidos=payload.get("apellidos"),
            especialidad=payload.get("especialidad"),
        )
    except ValidationError as exc:
        logger.error("Datos invalidos del doctor %s: %s", dni, exc)
        raise UpstreamError("Error al verificar el doctor") from exc


# Appointment history service -------------------------------------------------

async def list_appointments(dni_paciente: str) -> list[Appointment]:
    """Return every appointment of a patient, in the order the service sends them."""
    resp = await _send(
        "GET",
        f"{_CITAS_URL}/paciente/{dni_paciente}",
        None,
        "Error al obtener las citas del paciente",
    )
    payload = _json_or_none(resp) or []
    try:
        return [Appointment.model_validate(item) for item in payload]
    except (TypeError, ValidationError) as exc:
        logger.error("Citas invalidas para el paciente %s: %s", dni_paciente, exc)
        raise UpstreamError("Error al obtener las citas del paciente") from exc


async def fetch_appointment(appt_id: str) -> Appointment:
    """Fetch appointment details by ID."""
    resp = await _send("GET", f"{_CITAS_URL}/{appt_id}", AppointmentNotFound, "Error al obtener la cita")
    payload = _json_or_none(resp)
    if not payload:
        raise AppointmentNotFound()
    try:
        return Appointment.model_validate(payload)
    except ValidationError as exc:
        logger.error("Cita %s invalida: %s", appt_id, exc)
        raise UpstreamError("Error al obtener la cita") from exc


async def create_appointment(req: BookRequest) -> Appointment:
    """Register a new appointment; the service issues its id."""
    body = req.model_dump(by_alias=True)
    resp = await _send("POST", f"{_CITAS_URL}/{req.dni_paciente}", None, "Error al agendar la cita", json=body)
    payload = _json_or_none(resp)
    created = Appointment.model_validate(body)
    if isinstance(payload, dict) and payload.get("id") is not None:
        created.id = payload["id"]
    return created


async def delete_appointment(appt_id: str) -> None:
    await _send("DELETE", f"{_CITAS_URL}/{appt_id}", AppointmentNotFound, "Error al cancelar la cita")
