"""Lookup endpoints feeding the claim form."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from claimflow.api.deps import get_lookups_service, require_permissions
from claimflow.core.enums import Permission
from claimflow.schemas.lookup import AffiliateOption, ClientOption, PolicyOption
from claimflow.services.lookups_service import LookupsService
from claimflow.services.scope import SessionUser

router = APIRouter(
    prefix="/api/v1/lookups",
    tags=["lookups"],
)

reader = require_permissions(Permission.CLAIMS_READ.value)


@router.get("/clients", response_model=list[ClientOption])
async def list_clients(
    user: SessionUser = Depends(reader),
    service: LookupsService = Depends(get_lookups_service),
) -> list[ClientOption]:
    return [ClientOption.model_validate(c) for c in await service.list_clients(user)]


@router.get("/clients/{client_id}/affiliates", response_model=list[AffiliateOption])
async def list_affiliates(
    client_id: UUID,
    q: Optional[str] = Query(None, max_length=100),
    limit: int = Query(20, ge=1, le=100),
    user: SessionUser = Depends(reader),
    service: LookupsService = Depends(get_lookups_service),
) -> list[AffiliateOption]:
    affiliates = await service.list_affiliates(user, client_id, q, limit)
    return [AffiliateOption.model_validate(a) for a in affiliates]


@router.get("/affiliates/{affiliate_id}/patients", response_model=list[AffiliateOption])
async def list_patients(
    affiliate_id: UUID,
    user: SessionUser = Depends(reader),
    service: LookupsService = Depends(get_lookups_service),
) -> list[AffiliateOption]:
    patients = await service.list_patients(user, affiliate_id)
    return [AffiliateOption.model_validate(p) for p in patients]


@router.get("/clients/{client_id}/policies", response_model=list[PolicyOption])
async def list_policies(
    client_id: UUID,
    user: SessionUser = Depends(reader),
    service: LookupsService = Depends(get_lookups_service),
) -> list[PolicyOption]:
    return [PolicyOption.model_validate(p) for p in await service.list_policies(user, client_id)]
