"""Appointment lifecycle: transition table, ownership and concurrent writers"""

import threading
from datetime import time

import pytest

from carebook.database import SessionLocal
from carebook.domain.appointments import AppointmentLifecycle, AppointmentRepository, AppointmentStatus
from carebook.domain.appointments.transitions import TRANSITIONS, next_statuses, roles_reaching
from carebook.domain.access import Role
from carebook.domain.providers.service import ProviderService
from carebook.errors import (
    Conflict,
    Forbidden,
    InvalidTransition,
    NotAuthenticated,
    NotFound,
    StaleState,
    ValidationError,
)
from carebook.models import Appointment

from .conftest import WORKDAY, as_principal


def seed_appointment(db, patient, doctor, status="scheduled", start="10:00", duration=30, day=WORKDAY):
    appointment = Appointment(
        patient_id=patient.id,
        doctor_id=doctor.id,
        appointment_date=day,
        start_time=start,
        duration_minutes=duration,
        consultation_type="in_person",
        reason="Chest pain",
        symptoms=["chest pain"],
        status=status,
        payment_amount=800,
        payment_status="pending",
    )
    AppointmentRepository.create(db, appointment)
    return appointment


@pytest.fixture
def lifecycle(db, clock):
    return AppointmentLifecycle(db, clock=clock)


class TestTransitionTable:
    def test_table_matches_documented_edges(self):
        assert set(TRANSITIONS) == {
            (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED),
            (AppointmentStatus.PENDING, AppointmentStatus.CANCELLED),
            (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED),
            (AppointmentStatus.SCHEDULED, AppointmentStatus.CANCELLED),
            (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED),
            (AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED),
        }

    def test_roles_reaching(self):
        assert roles_reaching("confirmed") == {Role.DOCTOR, Role.ADMIN}
        assert roles_reaching("cancelled") == {Role.DOCTOR, Role.ADMIN, Role.PATIENT}

    def test_terminal_states_have_no_exits(self):
        for role in Role:
            assert next_statuses("cancelled", role) == []
            assert next_statuses("completed", role) == []


class TestTransitions:
    def test_doctor_confirms_then_completes(self, db, lifecycle, patient, doctor):
        appointment = seed_appointment(db, patient, doctor)
        principal = as_principal(doctor)

        confirmed = lifecycle.confirm(principal, appointment.id, provider_notes="Bring ECG report")
        assert confirmed.status == "confirmed"
        assert confirmed.provider_notes == "Bring ECG report"

        completed = lifecycle.complete(principal, appointment.id)
        assert completed.status == "completed"
        assert completed.start_time == "10:00"
        assert completed.appointment_date == WORKDAY

    def test_pending_hold_can_be_confirmed_by_admin(self, db, lifecycle, patient, doctor, admin):
        appointment = seed_appointment(db, patient, doctor, status="pending")
        assert lifecycle.confirm(as_principal(admin), appointment.id).status == "confirmed"

    def test_patient_cancels_own_appointment(self, db, lifecycle, patient, doctor):
        appointment = seed_appointment(db, patient, doctor)

        cancelled = lifecycle.cancel(as_principal(patient), appointment.id)

        assert cancelled.status == "cancelled"
        assert cancelled.cancelled_by == "patient"
        assert cancelled.cancellation_reason == "Cancelled by patient"
        assert cancelled.cancelled_at is not None

    def test_patient_cannot_cancel_someone_elses_appointment(
        self, db, lifecycle, patient, other_patient, doctor
    ):
        appointment = seed_appointment(db, patient, doctor)

        with pytest.raises(Forbidden):
            lifecycle.cancel(as_principal(other_patient), appointment.id, reason="Not mine")

        db.refresh(appointment)
        assert appointment.status == "scheduled"
        assert appointment.cancelled_at is None

    def test_patient_cannot_confirm(self, db, lifecycle, patient, doctor):
        appointment = seed_appointment(db, patient, doctor)
        with pytest.raises(Forbidden):
            lifecycle.confirm(as_principal(patient), appointment.id)
        db.refresh(appointment)
        assert appointment.status == "scheduled"

    def test_patient_cannot_cancel_confirmed_appointment(self, db, lifecycle, patient, doctor):
        appointment = seed_appointment(db, patient, doctor, status="confirmed")
        with pytest.raises(Forbidden):
            lifecycle.cancel(as_principal(patient), appointment.id)

    def test_doctor_cannot_touch_another_doctors_appointment(self, db, lifecycle, patient, doctor, other_doctor):
        appointment = seed_appointment(db, patient, doctor)
        with pytest.raises(Forbidden):
            lifecycle.confirm(as_principal(other_doctor), appointment.id)

    @pytest.mark.parametrize(
        "current,target",
        [
            ("scheduled", "completed"),
            ("pending", "completed"),
            ("cancelled", "confirmed"),
            ("completed", "cancelled"),
            ("confirmed", "confirmed"),
        ],
    )
    def test_transitions_outside_the_table_are_rejected(self, db, lifecycle, patient, doctor, current, target):
        appointment = seed_appointment(db, patient, doctor, status=current)

        with pytest.raises(InvalidTransition):
            lifecycle.transition(as_principal(doctor), appointment.id, target)

        db.refresh(appointment)
        assert appointment.status == current

    def test_unknown_appointment(self, lifecycle, doctor):
        with pytest.raises(NotFound):
            lifecycle.confirm(as_principal(doctor), "APT-0-missing")

    def test_unauthenticated_caller(self, db, lifecycle, patient, doctor):
        appointment = seed_appointment(db, patient, doctor)
        with pytest.raises(NotAuthenticated):
            lifecycle.cancel(None, appointment.id)

    @pytest.mark.parametrize("target", ["confirmed", "cancelled", "completed"])
    def test_unknown_id_is_hidden_from_anonymous_callers(self, lifecycle, target):
        with pytest.raises(NotAuthenticated):
            lifecycle.transition(None, "APT-0-missing", target)

    def test_stale_from_status_is_refused(self, db, patient, doctor):
        appointment = seed_appointment(db, patient, doctor)
        with pytest.raises(StaleState):
            AppointmentRepository.transition(
                db, appointment.id, "pending", "confirmed", as_principal(doctor)
            )
        db.refresh(appointment)
        assert appointment.status == "scheduled"

    def test_concurrent_confirmations_apply_once(self, db, patient, doctor, clock):
        appointment = seed_appointment(db, patient, doctor)
        principal = as_principal(doctor)
        barrier = threading.Barrier(2)
        outcomes = []

        def worker():
            session = SessionLocal()
            try:
                barrier.wait()
                AppointmentLifecycle(session, clock=clock).confirm(principal, appointment.id)
                outcomes.append("ok")
            except (InvalidTransition, StaleState) as e:
                outcomes.append(type(e).__name__)
            finally:
                session.close()

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert outcomes.count("ok") == 1
        assert len(outcomes) == 2
        db.refresh(appointment)
        assert appointment.status == "confirmed"


class TestCreation:
    def test_create_booking_requires_scheduled_status(self, lifecycle, patient, doctor):
        candidate = Appointment(
            patient_id=patient.id,
            doctor_id=doctor.id,
            appointment_date=WORKDAY,
            start_time="09:00",
            duration_minutes=30,
            consultation_type="in_person",
            reason="Checkup",
            symptoms=[],
            status="pending",
            payment_amount=800,
            payment_status="pending",
        )
        with pytest.raises(InvalidTransition):
            lifecycle.create_booking(candidate)

    def test_overlapping_insert_is_a_conflict(self, db, patient, other_patient, doctor):
        seed_appointment(db, patient, doctor, start="10:00", duration=30)
        with pytest.raises(Conflict) as exc:
            seed_appointment(db, other_patient, doctor, start="10:15", duration=15)
        assert exc.value.context["next"] == "select_slot"

    def test_cancelled_booking_frees_the_start_time(self, db, lifecycle, patient, other_patient, doctor):
        first = seed_appointment(db, patient, doctor, start="11:00")
        lifecycle.cancel(as_principal(patient), first.id)
        second = seed_appointment(db, other_patient, doctor, start="11:00")
        assert second.status == "scheduled"

    def test_unique_index_backs_the_overlap_check(self, db, patient, other_patient, doctor, monkeypatch):
        seed_appointment(db, patient, doctor, start="14:00")
        # Simulate a writer in another process that never saw the first booking
        monkeypatch.setattr(AppointmentRepository, "booked_for", staticmethod(lambda *_: []))
        with pytest.raises(Conflict):
            seed_appointment(db, other_patient, doctor, start="14:00")

    def test_doctor_places_hold(self, lifecycle, patient, doctor):
        hold = lifecycle.create_hold(
            as_principal(doctor),
            patient_id=patient.id,
            provider_id=doctor.id,
            day=WORKDAY,
            start_time=time(15, 0),
            consultation_type="phone",
            reason="Follow-up on test results",
        )
        assert hold.status == "pending"
        assert hold.duration_minutes == 15
        assert hold.payment_amount == 500
        assert hold.patient_name == "Priya Sharma"

    def test_off_grid_hold_is_rejected(self, db, lifecycle, clock, patient, doctor):
        with pytest.raises(ValidationError) as exc:
            lifecycle.create_hold(
                as_principal(doctor),
                patient_id=patient.id,
                provider_id=doctor.id,
                day=WORKDAY,
                start_time=time(10, 15),
                consultation_type="in_person",
                reason="Post-operative review",
            )
        assert "slot" in exc.value.field_errors

        slots = {s.label: s.available for s in ProviderService(db, clock=clock).slots(doctor.id, WORKDAY)}
        assert slots["10:00"] is True
        assert slots["10:30"] is True

    def test_hold_on_booked_time_conflicts(self, db, lifecycle, patient, other_patient, doctor):
        seed_appointment(db, patient, doctor, start="15:00")
        with pytest.raises(Conflict):
            lifecycle.create_hold(
                as_principal(doctor),
                patient_id=other_patient.id,
                provider_id=doctor.id,
                day=WORKDAY,
                start_time=time(15, 0),
                consultation_type="video",
                reason="Review",
            )

    def test_doctor_cannot_hold_on_another_calendar(self, lifecycle, patient, doctor, other_doctor):
        with pytest.raises(Forbidden):
            lifecycle.create_hold(
                as_principal(other_doctor),
                patient_id=patient.id,
                provider_id=doctor.id,
                day=WORKDAY,
                start_time=time(15, 0),
                consultation_type="video",
                reason="Review",
            )

    def test_patient_cannot_place_hold(self, lifecycle, patient, doctor):
        with pytest.raises(Forbidden):
            lifecycle.create_hold(
                as_principal(patient),
                patient_id=patient.id,
                provider_id=doctor.id,
                day=WORKDAY,
                start_time=time(15, 0),
                consultation_type="video",
                reason="Review",
            )


class TestQueries:
    def test_list_is_scoped_by_role(self, db, lifecycle, patient, other_patient, doctor, other_doctor, admin):
        seed_appointment(db, patient, doctor, start="09:00")
        seed_appointment(db, other_patient, doctor, start="10:00")
        seed_appointment(db, patient, other_doctor, start="11:00")

        assert len(lifecycle.list_for(as_principal(patient))) == 2
        assert len(lifecycle.list_for(as_principal(other_patient))) == 1
        assert len(lifecycle.list_for(as_principal(doctor))) == 2
        assert len(lifecycle.list_for(as_principal(other_doctor))) == 1
        assert len(lifecycle.list_for(as_principal(admin))) == 3

    def test_list_filters_by_status(self, db, lifecycle, patient, doctor):
        seed_appointment(db, patient, doctor, start="09:00")
        seed_appointment(db, patient, doctor, start="10:00", status="confirmed")
        confirmed = lifecycle.list_for(as_principal(patient), statuses=["confirmed"])
        assert [a.start_time for a in confirmed] == ["10:00"]

    def test_get_enforces_visibility(self, db, lifecycle, patient, other_patient, doctor):
        appointment = seed_appointment(db, patient, doctor)
        assert lifecycle.get(as_principal(patient), appointment.id).id == appointment.id
        with pytest.raises(Forbidden):
            lifecycle.get(as_principal(other_patient), appointment.id)
