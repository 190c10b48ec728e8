"""
Runtime configuration routes.
"""

from fastapi import APIRouter, status

from queuectl.api.deps import QueueDep
from queuectl.constants import API_V1_PREFIX
from queuectl.types.api import ConfigUpdateRequest

router = APIRouter(prefix=f"{API_V1_PREFIX}/config", tags=["Config"])


@router.get("", summary="Effective runtime configuration")
async def get_config(queue: QueueDep) -> dict[str, object]:
    return await queue.get_config()


@router.put(
    "/{key}",
    summary="Set a runtime override",
    description="Persist an override; dispatchers started afterwards pick it up.",
)
async def set_config(key: str, request: ConfigUpdateRequest, queue: QueueDep) -> dict[str, object]:
    return await queue.set_config(key, request.value)


@router.delete(
    "/{key}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a runtime override",
)
async def unset_config(key: str, queue: QueueDep) -> None:
    await queue.unset_config(key)
