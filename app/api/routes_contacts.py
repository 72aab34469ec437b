"""Contacts API Routes - Kundenkontakte (Manager und Admins)."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_manager
from app.database import get_db
from app.models.profile import Profile
from app.schemas.contact import Contact, ContactDetail
from app.services.contact_service import ContactService

router = APIRouter(prefix="/contacts", tags=["Kontakte"])


@router.get("", response_model=list[Contact])
async def list_contacts(
    search: str | None = Query(default=None, max_length=200),
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    """Alle Kunden aus Buchungen, letzter Termin zuerst."""
    return await ContactService(db).list_contacts(search)


@router.get("/{email}", response_model=ContactDetail)
async def get_contact(
    email: str,
    user: Profile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    return await ContactService(db).get_contact(email)
