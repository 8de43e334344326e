from fastapi import APIRouter
from app.api import auth, files, forms, responses

router = APIRouter()
router.include_router(auth.router, prefix="/auth", tags=["Auth"])
router.include_router(files.router, prefix="/files", tags=["Files"])
router.include_router(responses.router, prefix="/forms/{form_id}/responses", tags=["Responses"])
router.include_router(forms.router, prefix="/forms", tags=["Forms"])
