from typing import Annotated, Any, Dict

from fastapi import APIRouter, Body

from startrader.core.dependencies import RegistryDependency
from startrader.core.responses import send_success
from startrader.schemas.tools import ToolInfo

router = APIRouter(prefix="/tools", tags=["tools"])


@router.get("")
async def list_tools(registry: RegistryDependency):
    tools = [ToolInfo.from_descriptor(d) for d in registry.descriptors()]
    return send_success(message=f"{len(tools)} tools available", data=tools)


@router.post("/{name}")
async def run_tool(
    name: str,
    registry: RegistryDependency,
    args: Annotated[Dict[str, Any] | None, Body()] = None,
):
    result = await registry.run_function(name, args or {})
    return send_success(message=f"Function {name} executed successfully", data=result)
