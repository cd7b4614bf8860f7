# counsel_intake/api/clients.py
"""
Client records created from completed intakes (read-only here).
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from counsel_intake.auth.permissions import AuthContext, get_auth_context
from counsel_intake.core.db import get_db
from counsel_intake.models.orm import Client
from counsel_intake.models.schemas import ClientOut

router = APIRouter(prefix="/api/clients", tags=["clients"])


@router.get("", response_model=List[ClientOut])
def list_clients(
    skip: int = 0,
    limit: int = 100,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    q = (
        select(Client)
        .where(Client.organization_id == auth.organization_id)
        .order_by(Client.created_at.desc(), Client.id.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(db.scalars(q))


@router.get("/{client_id}", response_model=ClientOut)
def get_client(client_id: int, auth: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    client = db.get(Client, client_id)
    if not client or client.organization_id != auth.organization_id:
        raise HTTPException(status_code=404, detail="Client not found")
    return client
