# covid_odata/domain/odata/edm.py
"""Entity data model exposed over OData: entity sets, their properties and the CSDL document."""
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from covid_odata.domain.odata.errors import ResourceNotFound
from covid_odata.infra.db.models.case import Case
from covid_odata.infra.db.models.region import Region

EDM_NAMESPACE = "CovidOData.Models"
CONTAINER_NAME = "Container"


@dataclass(frozen=True)
class StructuralProperty:
    name: str
    attribute: str
    edm_type: str
    nullable: bool = True


@dataclass(frozen=True)
class NavigationProperty:
    name: str
    attribute: str
    target: str  # entity set name
    collection: bool


@dataclass(frozen=True)
class EntitySet:
    name: str
    type_name: str
    model: type
    key: str
    properties: Tuple[StructuralProperty, ...]
    navigations: Tuple[NavigationProperty, ...] = ()

    def get_property(self, name: str) -> Optional[StructuralProperty]:
        for prop in self.properties:
            if prop.name == name:
                return prop
        return None

    def get_navigation(self, name: str) -> Optional[NavigationProperty]:
        for nav in self.navigations:
            if nav.name == name:
                return nav
        return None

    def column(self, name: str):
        return getattr(self.model, self.get_property(name).attribute)

    @property
    def key_column(self):
        return self.column(self.key)


# Property order matches the serialized payload order.
CASES = EntitySet(
    name="Cases",
    type_name="Case",
    model=Case,
    key="Id",
    properties=(
        StructuralProperty("RegionId", "region_id", "Edm.Int32", nullable=False),
        StructuralProperty("RecordedDate", "recorded_date", "Edm.Date", nullable=False),
        StructuralProperty("ConfirmedCases", "confirmed_cases", "Edm.Int64"),
        StructuralProperty("RecoveredCases", "recovered_cases", "Edm.Int64"),
        StructuralProperty("DeathCases", "death_cases", "Edm.Int64"),
        StructuralProperty("Id", "id", "Edm.Int32", nullable=False),
    ),
    navigations=(
        NavigationProperty("Region", "region", target="Regions", collection=False),
    ),
)

REGIONS = EntitySet(
    name="Regions",
    type_name="Region",
    model=Region,
    key="Id",
    properties=(
        StructuralProperty("Name", "name", "Edm.String", nullable=False),
        StructuralProperty("Id", "id", "Edm.Int32", nullable=False),
    ),
    navigations=(
        NavigationProperty("Cases", "cases", target="Cases", collection=True),
    ),
)

ENTITY_SETS: Dict[str, EntitySet] = {
    CASES.name: CASES,
    REGIONS.name: REGIONS,
}


def get_entity_set(name: str) -> EntitySet:
    try:
        return ENTITY_SETS[name]
    except KeyError:
        raise ResourceNotFound(f"No entity set named '{name}'.")


def build_csdl() -> str:
    """Render the model as an OData v4 CSDL XML document."""
    edmx = ET.Element(
        "edmx:Edmx",
        {"Version": "4.0", "xmlns:edmx": "http://docs.oasis-open.org/odata/ns/edmx"},
    )
    data_services = ET.SubElement(edmx, "edmx:DataServices")
    schema = ET.SubElement(
        data_services,
        "Schema",
        {"Namespace": EDM_NAMESPACE, "xmlns": "http://docs.oasis-open.org/odata/ns/edm"},
    )

    for es in ENTITY_SETS.values():
        entity_type = ET.SubElement(schema, "EntityType", {"Name": es.type_name})
        key = ET.SubElement(entity_type, "Key")
        ET.SubElement(key, "PropertyRef", {"Name": es.key})
        for prop in es.properties:
            attrs = {"Name": prop.name, "Type": prop.edm_type}
            if not prop.nullable:
                attrs["Nullable"] = "false"
            ET.SubElement(entity_type, "Property", attrs)
        for nav in es.navigations:
            target_type = f"{EDM_NAMESPACE}.{ENTITY_SETS[nav.target].type_name}"
            attrs = {
                "Name": nav.name,
                "Type": f"Collection({target_type})" if nav.collection else target_type,
            }
            if not nav.collection:
                attrs["Nullable"] = "false"
            ET.SubElement(entity_type, "NavigationProperty", attrs)

    container = ET.SubElement(schema, "EntityContainer", {"Name": CONTAINER_NAME})
    for es in ENTITY_SETS.values():
        entity_set = ET.SubElement(
            container,
            "EntitySet",
            {"Name": es.name, "EntityType": f"{EDM_NAMESPACE}.{es.type_name}"},
        )
        for nav in es.navigations:
            ET.SubElement(
                entity_set,
                "NavigationPropertyBinding",
                {"Path": nav.name, "Target": nav.target},
            )

    body = ET.tostring(edmx, encoding="unicode")
    return '<?xml version="1.0" encoding="utf-8"?>' + body
