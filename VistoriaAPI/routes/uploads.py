from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.orm import Session

from VistoriaAPI import config, lifecycle
from VistoriaAPI.database import get_db
from VistoriaAPI.image_utils import is_allowed_photo_type
from VistoriaAPI.models import User
from VistoriaAPI.schemas import PhotoResponse
from VistoriaAPI.storage import BlobStore, get_blob_store
from .auth import get_current_user

router = APIRouter()


@router.post("/upload/photo/{item_id}", response_model=PhotoResponse, status_code=201)
async def upload_photo(
    item_id: int,
    photo: Optional[UploadFile] = File(None),
    caption: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
    current_user: User = Depends(get_current_user),
):
    """
    Upload a photo for a checklist item.

    The image is resized and re-encoded as WebP before it reaches the blob store.

    Args:
        item_id (int): The checklist item id.
        photo (UploadFile): JPEG, PNG or WebP image.
        caption (str, optional): Photo caption.

    Returns:
        PhotoResponse: The created photo.

    Raises:
        HTTPException: If no file was sent, the type is not allowed or the file is too large.
        NotFoundError: If the item does not exist.
        InvalidStateError: If the inspection is finalized.
    """
    if photo is None or not photo.filename:
        raise HTTPException(status_code=400, detail="No file sent")
    if not is_allowed_photo_type(photo.content_type):
        raise HTTPException(status_code=400, detail="File type not allowed; use JPEG, PNG or WebP")

    raw = await photo.read()
    if len(raw) > config.MAX_PHOTO_BYTES:
        raise HTTPException(status_code=400, detail="File too large")

    return lifecycle.add_photo(db, item_id, raw, store, caption=caption)


@router.delete("/upload/photo/{photo_id}")
def delete_photo(
    photo_id: int,
    db: Session = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
    current_user: User = Depends(get_current_user),
):
    lifecycle.delete_photo(db, photo_id, store)
    return {"detail": "Photo deleted"}
