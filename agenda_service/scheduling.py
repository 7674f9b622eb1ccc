"""Appointment scheduling workflow: book, list and cancel.

Remote calls inside a use case are sequential, except the doctor lookups of
``list_for_patient`` which run concurrently. Nothing here is transactional
across services: slot consumption after booking and slot restoration after
cancelling are separate best-effort steps.
"""
from __future__ import annotations
import asyncio
import logging

from . import client
from .availability import AvailabilityStore
from .errors import (
    NoAppointmentsFound,
    NotFound,
    SlotRestoreFailed,
    SlotUnavailable,
    UpstreamError,
)
from .models import Appointment, AppointmentView, BookRequest, Slot

logger = logging.getLogger(__name__)

DOCTOR_LOOKUP_FAILED = "Error al obtener los datos del doctor"


class Scheduler:
    def __init__(self, store: AvailabilityStore):
        self.store = store

    async def book(self, req: BookRequest) -> Appointment:
        """Validate patient, doctor and slot, then create the appointment.

        The consumed slot is *not* removed here; callers run
        :meth:`consume_slot` once the caller has been answered.
        """
        await client.fetch_patient(req.dni_paciente)

        await client.fetch_doctor(req.dni_doctor)
        logger.info("Doctor con DNI %s encontrado.", req.dni_doctor)

        slot = Slot(dia=req.dia, hora=req.hora)
        if not await self.store.has_slot(req.dni_doctor, slot):
            logger.warning(
                "El doctor con DNI %s no está disponible en la fecha %s y hora %s.",
                req.dni_doctor, req.dia, req.hora,
            )
            raise SlotUnavailable()
        logger.info("Doctor disponible en la fecha %s y hora %s.", req.dia, req.hora)

        appt = await client.create_appointment(req)
        logger.info("Cita creada con éxito: %s", appt.id)
        return appt

    async def consume_slot(self, dni_doctor: str, slot: Slot) -> bool:
        """Remove the slot used by a booking. Failures are logged, never raised."""
        try:
            removed = await self.store.remove_slot(dni_doctor, slot)
        except UpstreamError:
            logger.exception(
                "No se pudo eliminar la disponibilidad del doctor %s en %s a las %s",
                dni_doctor, slot.dia, slot.hora,
            )
            return False
        if removed:
            logger.info("Disponibilidad eliminada para el doctor %s en %s a las %s", dni_doctor, slot.dia, slot.hora)
        else:
            logger.warning("Disponibilidad ya no existía para el doctor %s en %s a las %s", dni_doctor, slot.dia, slot.hora)
        return removed

    async def list_for_patient(self, dni_paciente: str) -> list[AppointmentView]:
        appts = await client.list_appointments(dni_paciente)
        if not appts:
            raise NoAppointmentsFound(f"No se encontraron citas para el paciente con DNI {dni_paciente}")
        # gather preserves input order
        return list(await asyncio.gather(*(self._with_doctor(a) for a in appts)))

    async def _with_doctor(self, appt: Appointment) -> AppointmentView:
        try:
            doc = await client.fetch_doctor(appt.dni_doctor)
        except (UpstreamError, NotFound) as exc:
            logger.error("%s con DNI %s: %s", DOCTOR_LOOKUP_FAILED, appt.dni_doctor, exc.message)
            doctor = DOCTOR_LOOKUP_FAILED
        else:
            doctor = doc
        return AppointmentView(id=appt.id, fecha=appt.dia, hora=appt.hora, doctor=doctor)

    async def cancel(self, appt_id: str) -> Appointment:
        """Delete an appointment and give its slot back to the doctor."""
        logger.info("Obteniendo información de la cita con ID %s", appt_id)
        appt = await client.fetch_appointment(appt_id)

        logger.info("Eliminando cita con ID %s", appt_id)
        await client.delete_appointment(appt_id)

        await self.restore_slot(appt)
        return appt

    async def restore_slot(self, appt: Appointment) -> None:
        """Re-insert the slot of a deleted appointment.

        The appointment stays deleted if this fails.
        """
        logger.info("Restaurando disponibilidad del doctor %s en %s a las %s", appt.dni_doctor, appt.dia, appt.hora)
        try:
            await self.store.add_slot(appt.dni_doctor, appt.slot)
        except UpstreamError as exc:
            raise SlotRestoreFailed(
                f"Error al restaurar la disponibilidad del doctor {appt.dni_doctor}"
            ) from exc
        logger.info("Disponibilidad restaurada para el doctor %s", appt.dni_doctor)
