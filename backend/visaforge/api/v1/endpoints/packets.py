"""
USCIS packet generation endpoint
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from visaforge.api.v1.deps import get_current_user, get_storage
from visaforge.db.database import get_db
from visaforge.db.models import User
from visaforge.db.schemas import PacketGenerateRequest, PacketGenerateResponse
from visaforge.services import packet_service
from visaforge.services.storage_service import StorageService

router = APIRouter()


@router.post("/generate", response_model=PacketGenerateResponse)
def generate_packet(
    body: PacketGenerateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage),
):
    """
    Validate the generation gate, render the PDF and return a 7-day signed link.
    """
    url = packet_service.generate_packet(
        db,
        current_user.id,
        body.visa_app_id,
        body.visa_type,
        body.inputs,
        body.affidavit,
        storage=storage,
    )
    return PacketGenerateResponse(url=url)
