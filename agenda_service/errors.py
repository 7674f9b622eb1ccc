"""Structured errors raised by the clients and the scheduling workflow.

Each error carries a ``kind`` and a human readable ``message``. Only the HTTP
layer (``api.py``) knows how a kind maps to a status code.
"""
from __future__ import annotations
from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UPSTREAM = "upstream"
    INTERNAL = "internal"


class SchedulingError(Exception):
    kind: ErrorKind = ErrorKind.INTERNAL
    default_message = "Error interno"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(SchedulingError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Recurso no encontrado"


class PatientNotFound(NotFound):
    default_message = "Paciente no encontrado"


class DoctorNotFound(NotFound):
    default_message = "Doctor no encontrado"


class AppointmentNotFound(NotFound):
    default_message = "Cita no encontrada"


class SlotNotFound(NotFound):
    default_message = "Disponibilidad no encontrada"


class NoAppointmentsFound(NotFound):
    default_message = "No se encontraron citas para el paciente"


class SlotUnavailable(SchedulingError):
    kind = ErrorKind.CONFLICT
    default_message = "El doctor no está disponible en la fecha y hora solicitadas."


class UpstreamError(SchedulingError):
    """A dependency answered with a non-404 failure or did not answer at all."""

    kind = ErrorKind.UPSTREAM
    default_message = "Error al comunicarse con un servicio externo"


class SlotRestoreFailed(UpstreamError):
    default_message = "Error al restaurar la disponibilidad del doctor"


class InternalError(SchedulingError):
    kind = ErrorKind.INTERNAL
