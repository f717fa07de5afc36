"""Tool JWKS endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends, Response

from ltiauth.crypto.keys import pem_to_jwk_entry
from ltiauth.crypto.types import JWKSResponse
from ltiauth.db.engine import get_store
from ltiauth.db.store import SQLStore
from ltiauth.lti.key_pair import PUBLIC_KEY_COLLECTION

router = APIRouter()

JWKS_CACHE_CONTROL = "public, max-age=3600"


@router.get("/keys")
async def keys(
    response: Response,
    store: Annotated[SQLStore, Depends(get_store)],
) -> JWKSResponse:
    """Public keys platforms use to verify the tool's client assertions."""
    records = await store.find_all(PUBLIC_KEY_COLLECTION)
    entries = [pem_to_jwk_entry(r["key"], r["kid"]) for r in records]
    response.headers["Cache-Control"] = JWKS_CACHE_CONTROL
    return JWKSResponse(keys=entries)
