"""
Translation order endpoint (pass-through to the translation vendor)
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse

from visaforge.api.v1.deps import get_current_user, get_translator
from visaforge.db.models import User
from visaforge.services.translation_service import TranslationService

router = APIRouter()


@router.post("/order")
async def order_translation(
    file: Optional[UploadFile] = File(default=None),
    targetLang: Optional[str] = Form(default=None),
    current_user: User = Depends(get_current_user),
    translator: TranslationService = Depends(get_translator),
):
    """Forward the document; the vendor's status code and JSON body are returned as-is."""
    data = await file.read() if file is not None else None
    status_code, body = await translator.order(
        file.filename if file is not None else None,
        data,
        file.content_type if file is not None else None,
        targetLang,
    )
    return JSONResponse(content=body, status_code=status_code)
