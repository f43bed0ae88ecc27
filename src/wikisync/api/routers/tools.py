"""Tool registry endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from wikisync.api.deps import get_repository, get_tool_registry
from wikisync.api.schemas import ToolCallRequest, ToolCallResponse, ToolInfo
from wikisync.db.repositories import RepositoryRecord
from wikisync.tools import ToolError, ToolRegistry

router = APIRouter(prefix="/api", tags=["tools"])


@router.get("/tools", response_model=list[ToolInfo])
async def list_tools(registry: ToolRegistry = Depends(get_tool_registry)) -> list[ToolInfo]:
    """List registered tools."""
    return [ToolInfo(name=t.name, description=t.description) for t in registry.list_tools()]


@router.post("/repos/{repository_id}/tools/{tool_name}", response_model=ToolCallResponse)
async def call_tool(
    tool_name: str,
    request: ToolCallRequest,
    repository: RepositoryRecord = Depends(get_repository),
    registry: ToolRegistry = Depends(get_tool_registry),
) -> ToolCallResponse:
    """Run a tool against a repository."""
    try:
        registry.get(tool_name)
    except ToolError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    try:
        result = await registry.call(tool_name, repository.id, **request.arguments)
    except ToolError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return ToolCallResponse(tool=tool_name, result=result)
