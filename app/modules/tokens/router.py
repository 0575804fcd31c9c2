from fastapi import APIRouter, Depends, Query, status

from app.modules.tokens.issuer import TokenIssuer
from app.modules.tokens.schemas import Token, TokenRequest
from app.platform.provider_registry import registry

router = APIRouter()

def svc() -> TokenIssuer:
    return registry.tokens()

@router.post("/walk-in", response_model=Token, status_code=status.HTTP_201_CREATED)
async def walk_in(payload: TokenRequest, issuer: TokenIssuer = Depends(svc)):
    """Phone lookup, registration of new patients, then a Waiting token."""
    return await issuer.walk_in(payload)

@router.get("", response_model=list[Token])
async def list_tokens(
    token_status: str | None = Query(None, alias="status"),
    doctor_id: int | None = Query(None, alias="doctorId"),
    issuer: TokenIssuer = Depends(svc),
):
    return await issuer.list_tokens(status=token_status, doctor_id=doctor_id)
