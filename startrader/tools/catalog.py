from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Tuple


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    path: str
    properties: Mapping[str, Mapping[str, str]] = field(default_factory=dict)
    fixed_params: Mapping[str, Any] = field(default_factory=dict)
    raw: bool = False

    @property
    def requires_parameter(self) -> bool:
        """Tools that declare filters refuse to run without at least one of them."""
        return bool(self.properties)

    @property
    def parameter_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {
            "type": "object",
            "properties": {k: dict(v) for k, v in self.properties.items()},
            "required": [],
            "additionalProperties": False,
        }
        if self.requires_parameter:
            schema["minProperties"] = 1
        return schema

    def openai_definition(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameter_schema,
            },
        }


def _int(description: str) -> Dict[str, str]:
    return {"type": "integer", "description": description}


def _str(description: str) -> Dict[str, str]:
    return {"type": "string", "description": description}


STAR_SYSTEM = _int("Star system ID.")
PLANET = _int("Planet ID.")
ORBIT = _int("Orbit ID.")
MOON = _int("Moon ID.")
FACTION = _int("Faction ID.")
JURISDICTION = _int("Jurisdiction ID.")
LAGRANGE = _int("Filter for Lagrange points.")


TOOL_CATALOG: Tuple[ToolDescriptor, ...] = (
    ToolDescriptor(
        name="data_extract",
        description="Obtain the top 30 commodities routes according to UEX. All values are estimated.",
        path="/data_extract",
        fixed_params={"data": "commodities_routes"},
        raw=True,
    ),
    ToolDescriptor(
        name="get_commodities",
        description="Fetch a list of all commodities including specifics like legality and market price.",
        path="/commodities",
    ),
    ToolDescriptor(
        name="get_commodities_prices_all",
        description="Fetch a list of all commodity prices and their terminal availability. USE AS A LAST RESORT.",
        path="/commodities_prices_all",
    ),
    ToolDescriptor(
        name="get_commodities_raw_prices_all",
        description="Fetch a list of all raw commodity prices and their terminal availability.",
        path="/commodities_raw_prices_all",
    ),
    ToolDescriptor(
        name="get_all_terminals",
        description="Fetch a list of all terminal information to help plan trade routes or find locations to sell.",
        path="/terminals",
    ),
    ToolDescriptor(
        name="get_commodity_prices",
        description="Fetch specific commodity prices using query parameters.",
        path="/commodities_prices",
        properties={
            "id_terminal": _str("Comma-separated terminal IDs."),
            "id_commodity": _int("Commodity ID."),
            "terminal_name": _str("Terminal name."),
            "commodity_name": _str("Commodity name."),
            "terminal_code": _str("Terminal code."),
            "commodity_code": _str("Commodity code."),
        },
    ),
    ToolDescriptor(
        name="get_cities",
        description="Fetch a list of cities with optional filters.",
        path="/cities",
        properties={
            "id_star_system": STAR_SYSTEM,
            "id_planet": PLANET,
            "id_orbit": ORBIT,
            "id_moon": MOON,
        },
    ),
    ToolDescriptor(
        name="get_terminals",
        description="Fetch terminals using query parameters.",
        path="/terminals",
        properties={
            "id_star_system": STAR_SYSTEM,
            "id_planet": PLANET,
            "name": _str("Terminal name."),
        },
    ),
    ToolDescriptor(
        name="get_planets",
        description="Fetch planets with optional filters.",
        path="/planets",
        properties={
            "id_star_system": STAR_SYSTEM,
            "id_faction": FACTION,
            "id_jurisdiction": JURISDICTION,
            "is_lagrange": LAGRANGE,
        },
    ),
    ToolDescriptor(
        name="get_moons",
        description="Fetch moons using query parameters.",
        path="/moons",
        properties={
            "id_star_system": STAR_SYSTEM,
            "id_planet": PLANET,
            "id_faction": FACTION,
            "id_jurisdiction": JURISDICTION,
        },
    ),
    ToolDescriptor(
        name="get_orbits",
        description="Fetch orbit data using query parameters.",
        path="/orbits",
        properties={
            "id_star_system": STAR_SYSTEM,
            "id_faction": FACTION,
            "id_jurisdiction": JURISDICTION,
            "is_lagrange": LAGRANGE,
        },
    ),
    ToolDescriptor(
        name="get_space_stations",
        description="Fetch space station data using query parameters.",
        path="/space_stations",
        properties={
            "id_star_system": STAR_SYSTEM,
            "id_planet": PLANET,
            "id_orbit": ORBIT,
            "id_moon": MOON,
            "id_city": _int("City ID."),
            "id_faction": FACTION,
            "id_jurisdiction": JURISDICTION,
        },
    ),
)
