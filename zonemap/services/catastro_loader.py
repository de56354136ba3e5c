"""Load cadastral CSV exports into geo entities"""

from pathlib import Path
from typing import List, Optional, Union

import pandas as pd
import structlog

from zonemap.models import GeoEntity
from zonemap.utils.exceptions import ValidationError

logger = structlog.get_logger(__name__)

# Cadastral export column -> entity attribute
COLUMN_MAP = {
    "Referencia Catastral": "reference",
    "Tipo de vía": "street_type",
    "Nombre de vía": "street_name",
    "Numero": "number",
    "Bloque": "block",
    "Escalera": "stairway",
    "Planta": "floor",
    "Puerta": "door",
    "Tipo reforma": "reform_type",
    "Antiguedad": "age",
    "Calidad": "quality",
    "Superficie construida": "constructed_area",
    "Tipo": "property_type",
}

REFERENCE_COLUMN = "Referencia Catastral"


def _text(value) -> str:
    return "" if pd.isna(value) else str(value).strip()


def _number(value) -> Optional[float]:
    if pd.isna(value):
        return None
    try:
        return float(str(value).replace(",", "."))
    except ValueError:
        return None


def build_address(street_type: str, street_name: str, number: str) -> str:
    street = " ".join(p for p in (street_type, street_name) if p)
    return f"{street}, {number}" if number else street


def load_catastro_csv(path: Union[str, Path]) -> List[GeoEntity]:
    """
    Read a cadastral CSV export

    Rows without a cadastral reference are skipped. Coordinates come from
    optional ``lat``/``lng`` columns; rows without them load with no
    position and stay out of every geometric stage until geocoded.

    Raises:
        ValidationError: The file lacks the reference column
    """
    df = pd.read_csv(path, dtype=str, skipinitialspace=True, on_bad_lines="skip")
    df.columns = [c.strip() for c in df.columns]

    if REFERENCE_COLUMN not in df.columns:
        raise ValidationError(f"CSV is missing the '{REFERENCE_COLUMN}' column")

    lat_column = next((c for c in ("lat", "latitude") if c in df.columns), None)
    lng_column = next((c for c in ("lng", "lon", "longitude") if c in df.columns), None)

    entities = []
    skipped = 0
    for _, row in df.iterrows():
        reference = _text(row[REFERENCE_COLUMN])
        if not reference:
            skipped += 1
            continue

        attributes = {
            attr: _text(row[column])
            for column, attr in COLUMN_MAP.items()
            if column in df.columns and attr not in ("floor", "constructed_area")
        }

        entities.append(GeoEntity(
            id=reference,
            lat=_number(row[lat_column]) if lat_column else None,
            lng=_number(row[lng_column]) if lng_column else None,
            address=build_address(
                attributes.get("street_type", ""),
                attributes.get("street_name", ""),
                attributes.get("number", ""),
            ),
            floor=_text(row["Planta"]) if "Planta" in df.columns else "",
            size=_number(row["Superficie construida"]) if "Superficie construida" in df.columns else None,
            attributes=attributes,
        ))

    logger.info("Cadastral CSV loaded", path=str(path), entities=len(entities), skipped=skipped)
    return entities
