"""
Role and patient-ownership checks.

Every check fails closed: a missing row or a store error answers False/None,
never raises.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Patient, Provider, UserRole

logger = logging.getLogger(__name__)

PROVIDER_ROLES = ("provider", "admin")


class AccessResolver:
    """Answers who may touch which patient's records"""

    def __init__(self, db: Session):
        self.db = db

    def get_role(self, user_id: str) -> Optional[str]:
        try:
            row = self.db.query(UserRole).filter(UserRole.user_id == user_id).first()
        except SQLAlchemyError as e:
            logger.warning(f"⚠️ Role lookup failed for user {user_id}: {e}")
            return None
        return row.role if row else None

    def is_provider(self, user_id: str) -> bool:
        """Providers and admins have full access to active patients"""
        return self.get_role(user_id) in PROVIDER_ROLES

    def patient_is_active(self, patient_id: str) -> bool:
        try:
            patient = (
                self.db.query(Patient.id)
                .filter(Patient.id == patient_id, Patient.is_active.is_(True))
                .first()
            )
        except SQLAlchemyError as e:
            logger.warning(f"⚠️ Patient lookup failed for {patient_id}: {e}")
            return False
        return patient is not None

    def owns_patient(self, user_id: str, patient_id: str) -> bool:
        """A patient account may only reach its own active record"""
        try:
            patient = (
                self.db.query(Patient.id)
                .filter(
                    Patient.id == patient_id,
                    Patient.user_id == user_id,
                    Patient.is_active.is_(True),
                )
                .first()
            )
        except SQLAlchemyError as e:
            logger.warning(f"⚠️ Ownership lookup failed for user {user_id}: {e}")
            return False
        return patient is not None

    def provider_for_user(self, user_id: str) -> Optional[Provider]:
        try:
            return self.db.query(Provider).filter(Provider.user_id == user_id).first()
        except SQLAlchemyError as e:
            logger.warning(f"⚠️ Provider lookup failed for user {user_id}: {e}")
            return None

    def get_provider(self, provider_id: Optional[str]) -> Optional[Provider]:
        if not provider_id:
            return None
        try:
            return self.db.query(Provider).filter(Provider.id == provider_id).first()
        except SQLAlchemyError as e:
            logger.warning(f"⚠️ Provider lookup failed for {provider_id}: {e}")
            return None
