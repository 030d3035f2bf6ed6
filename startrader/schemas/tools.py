from typing import Any, Dict

from pydantic import BaseModel

from startrader.tools.catalog import ToolDescriptor


class ToolInfo(BaseModel):
    name: str
    description: str
    parameters: Dict[str, Any]
    requires_parameter: bool

    @classmethod
    def from_descriptor(cls, descriptor: ToolDescriptor) -> "ToolInfo":
        return cls(
            name=descriptor.name,
            description=descriptor.description,
            parameters=descriptor.parameter_schema,
            requires_parameter=descriptor.requires_parameter,
        )
