"""Booking workflow: stage handling, validation and double-booking"""

import threading
from datetime import time

import pytest

from carebook.database import SessionLocal
from carebook.domain.appointments import AppointmentRepository
from carebook.domain.booking import BookingStage
from carebook.domain.booking.service import BookingService
from carebook.errors import CareBookError, Conflict, Forbidden, InvalidTransition, NotAuthenticated, NotFound, ValidationError
from carebook.models import Appointment

from .conftest import WORKDAY, as_principal, make_doctor

DETAILS = {
    "patient_name": "Priya Sharma",
    "email": "priya.sharma@example.com",
    "phone": "9876543210",
    "reason": "Recurring palpitations",
    "consultation_type": "video",
}


@pytest.fixture
def service(db, clock):
    return BookingService(db, clock=clock)


@pytest.fixture
def workflow(service, patient):
    return service.start(as_principal(patient))


def take_slot(db, patient, doctor, start="10:00", duration=30):
    AppointmentRepository.create(
        db,
        Appointment(
            patient_id=patient.id,
            doctor_id=doctor.id,
            appointment_date=WORKDAY,
            start_time=start,
            duration_minutes=duration,
            consultation_type="in_person",
            reason="Existing booking",
            symptoms=[],
            status="scheduled",
            payment_amount=800,
            payment_status="pending",
        ),
    )


class TestEntry:
    def test_only_patients_may_book(self, service, doctor, admin):
        with pytest.raises(Forbidden):
            service.start(as_principal(doctor))
        with pytest.raises(Forbidden):
            service.start(as_principal(admin))

    def test_unauthenticated_caller_cannot_book(self, service):
        with pytest.raises(NotAuthenticated):
            service.start(None)

    def test_unverified_doctor_is_not_bookable(self, db, workflow):
        unverified = make_doctor(db, email="new.doc@example.com", full_name="Dr. New", verified=False)
        with pytest.raises(NotFound):
            workflow.select_provider(unverified.id)
        assert workflow.stage is BookingStage.SELECTING_PROVIDER


class TestConfirm:
    def test_video_consultation_booking(self, workflow, patient, doctor):
        workflow.select_provider(doctor.id)
        workflow.select_slot(WORKDAY, "10:00")
        workflow.enter_details(**DETAILS)
        workflow.add_symptom("palpitations")
        workflow.add_symptom("  dizziness ")

        appointment = workflow.confirm()

        assert appointment.status == "scheduled"
        assert appointment.payment_amount == 1200
        assert appointment.payment_status == "pending"
        assert appointment.duration_minutes == 25
        assert appointment.consultation_type == "video"
        assert appointment.patient_id == patient.id
        assert appointment.doctor_id == doctor.id
        assert appointment.start_time == "10:00"
        assert appointment.symptoms == ["palpitations", "dizziness"]
        assert appointment.id.startswith("APT-")
        assert workflow.stage is BookingStage.CONFIRMED
        assert workflow.draft is None

    def test_slot_taken_during_details_sends_user_back(self, db, workflow, other_patient, doctor):
        workflow.select_provider(doctor.id)
        workflow.select_slot(WORKDAY, "10:00")
        workflow.enter_details(**DETAILS)

        take_slot(db, other_patient, doctor, start="10:00")

        with pytest.raises(Conflict) as exc:
            workflow.confirm()

        assert exc.value.context["next"] == "select_slot"
        assert workflow.stage is BookingStage.SELECTING_SLOT
        assert workflow.draft.slot is None
        assert workflow.draft.patient_name == "Priya Sharma"

        workflow.select_slot(WORKDAY, "11:00")
        assert workflow.confirm().start_time == "11:00"

    def test_appointment_interval_is_rechecked_at_commit(self, db, workflow, other_patient, doctor):
        workflow.select_provider(doctor.id)
        workflow.select_slot(WORKDAY, "10:00")
        workflow.enter_details(**{**DETAILS, "consultation_type": "in_person"})

        # A short hold at 10:20 leaves the 10:00 grid slot looking taken afterwards
        take_slot(db, other_patient, doctor, start="10:20", duration=10)

        with pytest.raises(Conflict):
            workflow.confirm()
        assert workflow.stage is BookingStage.SELECTING_SLOT

    def test_other_persistence_failures_stay_on_details(self, workflow, doctor):
        workflow.select_provider(doctor.id)
        workflow.select_slot(WORKDAY, "10:00")
        workflow.enter_details(**DETAILS)

        def broken(_candidate):
            raise CareBookError("storage offline")

        workflow.lifecycle.create_booking = broken

        with pytest.raises(CareBookError):
            workflow.confirm()
        assert workflow.stage is BookingStage.ENTERING_DETAILS
        assert workflow.draft.slot is not None

    def test_concurrent_bookings_for_one_slot(self, db, patient, other_patient, doctor, clock):
        barrier = threading.Barrier(2)
        outcomes = []

        def book(user):
            session = SessionLocal()
            try:
                flow = BookingService(session, clock=clock).start(as_principal(user))
                flow.select_provider(doctor.id)
                flow.select_slot(WORKDAY, "09:30")
                flow.enter_details(**{**DETAILS, "patient_name": user.full_name, "email": user.email})
                barrier.wait()
                flow.confirm()
                outcomes.append("booked")
            except Conflict:
                outcomes.append("conflict")
            finally:
                session.close()

        threads = [threading.Thread(target=book, args=(user,)) for user in (patient, other_patient)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert sorted(outcomes) == ["booked", "conflict"]
        live = AppointmentRepository.booked_for(db, doctor.id, WORKDAY)
        assert [a.start_time for a in live] == ["09:30"]


class TestSlotStage:
    def test_unavailable_slot_is_a_conflict(self, db, workflow, other_patient, doctor):
        take_slot(db, other_patient, doctor, start="10:00")
        workflow.select_provider(doctor.id)
        with pytest.raises(Conflict):
            workflow.select_slot(WORKDAY, "10:00")
        assert workflow.stage is BookingStage.SELECTING_SLOT

    def test_off_grid_time_is_invalid(self, workflow, doctor):
        workflow.select_provider(doctor.id)
        with pytest.raises(ValidationError):
            workflow.select_slot(WORKDAY, time(10, 15))
        with pytest.raises(ValidationError):
            workflow.select_slot(WORKDAY, "25:00")

    def test_slots_listing_for_selected_provider(self, workflow, doctor):
        workflow.select_provider(doctor.id)
        assert len(workflow.slots(WORKDAY).available()) == 16


class TestDetails:
    @pytest.fixture
    def on_details(self, workflow, doctor):
        workflow.select_provider(doctor.id)
        workflow.select_slot(WORKDAY, "10:00")
        return workflow

    @pytest.mark.parametrize(
        "field,value,error_field",
        [
            ("patient_name", "", "patientName"),
            ("patient_name", "x" * 101, "patientName"),
            ("email", "priya.sharma@", "email"),
            ("phone", "98765", "phone"),
            ("phone", "98765432101", "phone"),
            ("phone", "98765-4321", "phone"),
            ("reason", "   ", "reason"),
            ("reason", "r" * 501, "reason"),
            ("notes", "n" * 1001, "notes"),
            ("consultation_type", "home_visit", "consultationType"),
        ],
    )
    def test_invalid_field(self, on_details, field, value, error_field):
        with pytest.raises(ValidationError) as exc:
            on_details.enter_details(**{**DETAILS, field: value})

        assert error_field in exc.value.field_errors
        assert on_details.stage is BookingStage.ENTERING_DETAILS
        # Stored as entered, never truncated
        assert getattr(on_details.draft, field) == value

    def test_boundary_values_are_accepted(self, on_details):
        on_details.enter_details(**{**DETAILS, "patient_name": "x" * 100, "reason": "r" * 500, "notes": "n" * 1000})

    def test_symptom_rules(self, on_details):
        on_details.add_symptom("cough")
        assert on_details.add_symptom(" cough ") == ["cough"]

        with pytest.raises(ValidationError):
            on_details.add_symptom("s" * 51)
        with pytest.raises(ValidationError):
            on_details.add_symptom("   ")

        for i in range(19):
            on_details.add_symptom(f"symptom {i}")
        with pytest.raises(ValidationError):
            on_details.add_symptom("one too many")

        assert on_details.remove_symptom(0)[0] == "symptom 0"
        assert len(on_details.draft.symptoms) == 19

    def test_confirm_before_details_is_out_of_order(self, workflow, doctor):
        workflow.select_provider(doctor.id)
        with pytest.raises(InvalidTransition):
            workflow.confirm()


class TestBack:
    def test_back_keeps_entered_details(self, workflow, doctor):
        workflow.select_provider(doctor.id)
        workflow.select_slot(WORKDAY, "10:00")
        workflow.enter_details(**DETAILS)

        assert workflow.back() is BookingStage.SELECTING_SLOT
        workflow.select_slot(WORKDAY, "14:00")

        appointment = workflow.confirm()
        assert appointment.start_time == "14:00"
        assert appointment.patient_name == "Priya Sharma"

    def test_changing_provider_clears_slot_choice(self, workflow, doctor, other_doctor):
        workflow.select_provider(doctor.id)
        workflow.select_slot(WORKDAY, "10:00")
        workflow.back()
        workflow.back()

        workflow.select_provider(other_doctor.id)
        assert workflow.draft.slot is None
        assert workflow.draft.provider.id == other_doctor.id

    def test_no_back_from_first_stage(self, workflow):
        with pytest.raises(InvalidTransition):
            workflow.back()
