from typing import Union
from pydantic import BaseModel, Field

class Slot(BaseModel):
    """A bookable (day, time) window of a doctor."""
    dia: str  # day-of-week label, e.g. "Lunes"
    hora: str  # HH:MM:SS

class Doctor(BaseModel):
    nombres: str | None = None
    apellidos: str | None = None
    especialidad: str | None = None

class Appointment(BaseModel):
    id: Union[str, int, None] = None  # issued by the appointment store
    dni_paciente: str = Field(alias="dniPaciente")
    dni_doctor: str = Field(alias="dniDoctor")
    dia: str
    hora: str

    model_config = {
        "populate_by_name": True
    }

    @property
    def slot(self) -> Slot:
        return Slot(dia=self.dia, hora=self.hora)

class BookRequest(BaseModel):
    dni_paciente: str = Field(alias="dniPaciente")
    dni_doctor: str = Field(alias="dniDoctor")
    dia: str
    hora: str  # HH:MM:SS

    model_config = {
        "populate_by_name": True
    }

class AppointmentView(BaseModel):
    """Appointment entry returned when listing a patient's appointments."""
    id: Union[str, int, None] = None
    fecha: str
    hora: str
    # placeholder string when the doctor lookup failed for this entry
    doctor: Union[Doctor, str]
