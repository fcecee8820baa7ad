from .schemas import BookingRequest, PatientDetails
from .workflow import BookingDraft, BookingStage, BookingWorkflow

__all__ = ["BookingDraft", "BookingRequest", "BookingStage", "BookingWorkflow", "PatientDetails"]
