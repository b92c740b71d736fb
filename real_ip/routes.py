from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from .networks import IPAddress
from .request import client_address

router = APIRouter(prefix="/v1", tags=["ip"])


class ClientIpResponse(BaseModel):
    ip: Optional[str] = None


@router.get("/ip", response_model=ClientIpResponse)
async def get_ip(addr: Optional[IPAddress] = Depends(client_address)):
    """
    Echo the resolved client address.

    Returns:
    - ip: The client address, null if the connection has no IP peer
    """
    return ClientIpResponse(ip=str(addr) if addr is not None else None)
