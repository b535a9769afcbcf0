# app/services/catalog.py
"""Read-only lookups into the service catalog and provider profiles."""
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.db.models.provider import ServiceProvider
from app.db.models.service import Service
from app.db.models.user import User


def get_available_services(db: Session, service_ids: Iterable[int]) -> Dict[int, Service]:
    """Map id -> Service for every requested id that exists and is bookable."""
    ids = set(service_ids)
    if not ids:
        return {}
    rows = (
        db.query(Service)
        .filter(Service.id.in_(ids), Service.is_available == True)  # noqa: E712
        .all()
    )
    return {s.id: s for s in rows}


def get_provider(db: Session, provider_id: int) -> ServiceProvider:
    provider = db.query(ServiceProvider).filter(ServiceProvider.id == provider_id).first()
    if not provider:
        raise NotFoundError("Provider not found")
    return provider


def get_provider_profile(user: User) -> Optional[ServiceProvider]:
    return user.provider_profile
