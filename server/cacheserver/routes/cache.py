# ─────────────────────────────────────────────────────────────────────────────
# Cache Routes — {api_base}/cache/{key}
# ─────────────────────────────────────────────────────────────────────────────
# GET    → 200 + raw bytes | 400 empty key | 404 absent
# PUT    → 201             | 400 empty key | 500 read failure / rejected write
# DELETE → 200             | 404 empty key or absent
# ─────────────────────────────────────────────────────────────────────────────

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from cacheserver.dependencies import get_cache_resource
from cacheserver.handlers import CacheResource
from cacheserver.keys import extract_key

router = APIRouter()

# {key:path} also matches the empty string, so ".../cache/" reaches the
# handlers and gets the per-verb empty-key status instead of a routing 404.
_ENTRY_PATH = "/cache/{key:path}"


@router.get(_ENTRY_PATH)
async def get_entry(key: str, resource: CacheResource = Depends(get_cache_resource)) -> Response:
    value = resource.get(extract_key(key))
    return Response(content=value, media_type="application/octet-stream")


@router.put(_ENTRY_PATH, status_code=201)
async def put_entry(
    key: str,
    request: Request,
    resource: CacheResource = Depends(get_cache_resource),
) -> Response:
    await resource.put(extract_key(key), request.stream())
    return Response(status_code=201)


@router.delete(_ENTRY_PATH)
async def delete_entry(key: str, resource: CacheResource = Depends(get_cache_resource)) -> Response:
    resource.delete(extract_key(key))
    return Response(status_code=200)
