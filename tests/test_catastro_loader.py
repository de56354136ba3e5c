"""
ZoneMap: Cadastral CSV Loader Tests
Run: pytest tests/test_catastro_loader.py -v
"""

import pytest

from zonemap.services.catastro_loader import build_address, load_catastro_csv
from zonemap.utils.exceptions import ValidationError

CSV_HEADER = (
    "Referencia Catastral,Tipo de vía,Nombre de vía,Numero,Bloque,Escalera,"
    "Planta,Puerta,Superficie construida,lat,lng\n"
)


def write_csv(tmp_path, body, header=CSV_HEADER):
    path = tmp_path / "catastro.csv"
    path.write_text(header + body, encoding="utf-8")
    return path


class TestCatastroLoader:

    def test_rows_become_entities(self, tmp_path):
        path = write_csv(tmp_path, (
            '9872023VH5797S0001WX,CL,MAYOR,12,,1,2A,B,"95,5",39.47,-0.37\n'
            "9872023VH5797S0002EM,AV,DEL PUERTO,,,,BJ,,,,\n"
        ))
        entities = load_catastro_csv(path)

        assert [e.id for e in entities] == ["9872023VH5797S0001WX", "9872023VH5797S0002EM"]

        first = entities[0]
        assert first.address == "CL MAYOR, 12"
        assert first.floor == "2A"
        assert first.size == 95.5
        assert (first.lat, first.lng) == (39.47, -0.37)
        assert first.attributes["door"] == "B"
        assert first.attributes["reference"] == "9872023VH5797S0001WX"
        assert first.field_text("street_name") == "MAYOR"

        second = entities[1]
        assert second.address == "AV DEL PUERTO"
        assert second.size is None
        assert second.has_valid_position is False

    def test_rows_without_reference_skipped(self, tmp_path):
        path = write_csv(tmp_path, (
            ",CL,MAYOR,1,,,1,,,,\n"
            "REF1,CL,MAYOR,2,,,1,,,,\n"
        ))
        assert [e.id for e in load_catastro_csv(path)] == ["REF1"]

    def test_missing_reference_column(self, tmp_path):
        path = write_csv(tmp_path, "CL,MAYOR\n", header="Tipo de vía,Nombre de vía\n")
        with pytest.raises(ValidationError):
            load_catastro_csv(path)

    def test_without_coordinate_columns(self, tmp_path):
        path = write_csv(tmp_path, "REF1,CL,LUNA,4\n",
                         header="Referencia Catastral,Tipo de vía,Nombre de vía,Numero\n")
        entity = load_catastro_csv(path)[0]
        assert entity.lat is None
        assert entity.floor == ""
        assert entity.address == "CL LUNA, 4"

    @pytest.mark.parametrize("parts,expected", [
        (("CL", "MAYOR", "12"), "CL MAYOR, 12"),
        (("", "MAYOR", ""), "MAYOR"),
        (("", "", ""), ""),
    ])
    def test_build_address(self, parts, expected):
        assert build_address(*parts) == expected
