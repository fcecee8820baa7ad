"""Provider directory - read-only lookups over doctor profiles, plus doctor-managed holidays"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session, joinedload, selectinload

from ...errors import NotFound
from ...models import DoctorHoliday, DoctorProfile, User
from ...shared.validators import parse_hhmm
from .schemas import ConsultationKind, ConsultationOption, Holiday, Provider, WorkingHours

logger = logging.getLogger(__name__)


def to_holiday(row: DoctorHoliday) -> Holiday:
    return Holiday(date=row.holiday_date, reason=row.reason, recurring=bool(row.is_recurring))


def to_provider(profile: DoctorProfile) -> Provider:
    return Provider(
        id=profile.user_id,
        display_name=profile.user.full_name,
        specialization=profile.specialization,
        consultation_types=tuple(
            ConsultationOption(
                type=ConsultationKind(ct.type),
                fee=ct.fee,
                duration_minutes=ct.duration_minutes,
            )
            for ct in profile.consultation_types
        ),
        working_hours=WorkingHours(start=parse_hhmm(profile.work_start), end=parse_hhmm(profile.work_end)),
        working_days=frozenset(profile.working_days or []),
        bio=profile.bio,
        experience_years=profile.experience_years or 0,
        holidays=tuple(to_holiday(h) for h in profile.holidays),
    )


class ProviderDirectory:
    """Lookup of verified, active doctors"""

    def __init__(self, db: Session):
        self.db = db

    def _base_query(self):
        return (
            self.db.query(DoctorProfile)
            .join(User, User.id == DoctorProfile.user_id)
            .options(
                joinedload(DoctorProfile.user),
                joinedload(DoctorProfile.consultation_types),
                selectinload(DoctorProfile.holidays),
            )
            .filter(DoctorProfile.is_verified.is_(True), User.is_active.is_(True))
        )

    def get(self, provider_id: str) -> Provider:
        """Return the provider or raise NotFound (unverified doctors are not bookable)"""
        profile = self._base_query().filter(DoctorProfile.user_id == provider_id).first()
        if not profile:
            logger.info(f"🔍 Provider {provider_id} not found or not verified")
            raise NotFound("Doctor not found or not verified", resource="provider", id=provider_id)
        return to_provider(profile)

    def list(self, specialization: Optional[str] = None) -> list[Provider]:
        query = self._base_query()
        if specialization:
            query = query.filter(DoctorProfile.specialization.ilike(f"%{specialization}%"))
        profiles = query.order_by(DoctorProfile.specialization.asc()).all()
        return [to_provider(p) for p in profiles]


class HolidayRepository:
    """Days off recorded by a doctor; verification does not matter here"""

    @staticmethod
    def for_doctor(db: Session, doctor_id: str) -> list[DoctorHoliday]:
        return (
            db.query(DoctorHoliday)
            .filter(DoctorHoliday.doctor_id == doctor_id)
            .order_by(DoctorHoliday.holiday_date.asc())
            .all()
        )

    @staticmethod
    def add(db: Session, doctor_id: str, day: date, reason: Optional[str], recurring: bool) -> DoctorHoliday:
        profile = db.query(DoctorProfile).filter(DoctorProfile.user_id == doctor_id).first()
        if not profile:
            raise NotFound("Doctor profile not found", resource="provider", id=doctor_id)
        row = DoctorHoliday(doctor_id=doctor_id, holiday_date=day, reason=reason, is_recurring=recurring)
        db.add(row)
        db.commit()
        db.refresh(row)
        logger.info(f"🏖️ Holiday {day} added for doctor {doctor_id} (recurring={recurring})")
        return row
