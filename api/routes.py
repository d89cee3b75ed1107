import base64
import binascii

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse

from ledger.models import AccountResponse, CreditsRequest, ErrorResponse, LoginRequest
from ledger.service import (
    LedgerService, LedgerServiceError, AccountNotFoundError,
    InsufficientCreditsError, InvalidRequestError,
)
from restoration.models import RestoreRequest, RestoredImage
from restoration.proxy import ProviderError, RestorationProxy

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


class ProviderHTTPException(HTTPException):
    def __init__(self, error: ProviderError):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=error.message)
        self.provider_status = error.status_code


def get_ledger_service(request: Request) -> LedgerService:
    return request.app.state.ledger


def get_restoration_proxy(request: Request) -> RestorationProxy:
    return request.app.state.proxy


@router.get("/", response_class=PlainTextResponse, tags=["System"])
def root() -> str:
    return "PhotoRevive AI Backend is running!"


@router.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "photorevive"}


@router.post("/login", response_model=AccountResponse, responses=ERROR_RESPONSES, tags=["Accounts"])
def login(request: LoginRequest, ledger: LedgerService = Depends(get_ledger_service)):
    try:
        return ledger.login_or_create(request.name, request.referral_code)
    except InvalidRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LedgerServiceError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.post("/spend", response_model=AccountResponse, responses=ERROR_RESPONSES, tags=["Credits"])
def spend_credits(request: CreditsRequest, ledger: LedgerService = Depends(get_ledger_service)):
    try:
        return ledger.spend(request.name, request.amount)
    except AccountNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except (InsufficientCreditsError, InvalidRequestError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/add-credits", response_model=AccountResponse, responses=ERROR_RESPONSES, tags=["Credits"])
def add_credits(request: CreditsRequest, ledger: LedgerService = Depends(get_ledger_service)):
    try:
        return ledger.credit(request.name, request.amount)
    except AccountNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/users/{name}", response_model=AccountResponse, responses=ERROR_RESPONSES, tags=["Accounts"])
def get_user(name: str, ledger: LedgerService = Depends(get_ledger_service)):
    try:
        return ledger.get_account(name)
    except AccountNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/restore", response_model=RestoredImage, responses=ERROR_RESPONSES, tags=["Restoration"])
def restore_photo(request: RestoreRequest, proxy: RestorationProxy = Depends(get_restoration_proxy)):
    if not request.mime_type.startswith("image/"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="mimeType must be an image type")
    try:
        image_bytes = base64.b64decode("".join(request.image.split()), validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="image must be base64 encoded")

    try:
        return proxy.restore(image_bytes, request.mime_type, request.prompt)
    except ProviderError as e:
        raise ProviderHTTPException(e)
