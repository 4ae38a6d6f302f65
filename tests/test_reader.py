import io

import ezdxf
import pytest

from apps.core.context import ImportContext
from apps.core.exceptions import ParseError, SectionParseError
from apps.dxf.services.parser import DXFReaderService, read_dxf
from apps.dxf.services.parser import ezdxf_fallback
from apps.dxf.services.parser.models import DxfStructure, LWPolylineEntity
from apps.dxf.services.parser.reader import decode_dxf
from dxf_builders import dxf_document, line, pairs


@pytest.fixture
def ezdxf_drawing():
    doc = ezdxf.new("R2010")
    doc.layers.add("Building", color=1)
    msp = doc.modelspace()
    msp.add_lwpolyline(
        [(2600000, 1200000), (2600100, 1200000), (2600100, 1200100)],
        close=True,
        dxfattribs={"layer": "Building"},
    )
    msp.add_line((0, 0), (5, 5), dxfattribs={"layer": "Axes"})
    return doc


def test_decode_falls_back_to_cp1252():
    text = dxf_document(entities=line((0, 0), (1, 1), layer="Gebäude"))
    assert "Gebäude" in decode_dxf(text.encode("cp1252"))


def test_read_bytes_uses_the_group_code_parser(lv95_building_dxf, context):
    structure = DXFReaderService(context).read_bytes(lv95_building_dxf)

    assert structure.source == "parser"
    assert structure.header.version == "AC1015"
    assert set(structure.layers) == {"0", "Building"}
    assert isinstance(structure.entities[0], LWPolylineEntity)
    assert context.warnings == []


def test_read_file(tmp_path, lv95_building_dxf):
    path = tmp_path / "plan.dxf"
    path.write_bytes(lv95_building_dxf)
    assert len(DXFReaderService().read_file(path).entities) == 1


def test_read_file_missing_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        DXFReaderService().read_file(tmp_path / "missing.dxf")


def test_parser_reads_ezdxf_output(ezdxf_drawing):
    stream = io.StringIO()
    ezdxf_drawing.write(stream)

    structure = read_dxf(stream.getvalue().encode("utf-8"))

    assert structure.source == "parser"
    polyline = next(e for e in structure.entities if isinstance(e, LWPolylineEntity))
    assert polyline.layer == "Building"
    assert polyline.closed
    assert len(polyline.vertices) == 3
    assert "Axes" in structure.layers


def test_binary_dxf_goes_through_ezdxf(tmp_path, ezdxf_drawing):
    path = tmp_path / "binary.dxf"
    ezdxf_drawing.saveas(path, fmt="bin")

    structure = DXFReaderService().read_file(path)

    assert structure.source == "ezdxf"
    polyline = next(e for e in structure.entities if isinstance(e, LWPolylineEntity))
    assert polyline.vertices[0].x == 2600000.0
    assert polyline.vertices[0].z is None


def test_malformed_text_falls_back_with_warning(monkeypatch):
    fallback = DxfStructure(source="ezdxf")
    monkeypatch.setattr(ezdxf_fallback, "read_structure", lambda content: fallback)
    context = ImportContext()
    broken = pairs((0, "SECTION"), (2, "ENTITIES")) + line((0, 0), (1, 1))

    structure = DXFReaderService(context).read_text(broken)

    assert structure is fallback
    assert context.warnings[0]["message"].startswith("DXF parser failed")


def test_fallback_disabled_raises_parser_error():
    broken = pairs((0, "SECTION"), (2, "ENTITIES")) + line((0, 0), (1, 1))
    with pytest.raises(SectionParseError):
        DXFReaderService(use_fallback=False).read_text(broken)


def test_original_error_raised_when_fallback_fails_too(monkeypatch):
    def unreadable(content):
        raise ezdxf.DXFStructureError("not a DXF file")

    monkeypatch.setattr(ezdxf_fallback, "read_structure", unreadable)
    broken = pairs((0, "SECTION"), (2, "ENTITIES")) + line((0, 0), (1, 1))

    with pytest.raises(SectionParseError):
        DXFReaderService().read_text(broken)


def test_structure_from_ezdxf_document(ezdxf_drawing):
    structure = ezdxf_fallback.structure_from_document(ezdxf_drawing)

    assert structure.source == "ezdxf"
    assert structure.layers["Building"].color == 1
    assert structure.layers["Axes"].implicit
    assert {e.dxftype for e in structure.entities} == {"LWPOLYLINE", "LINE"}


def test_corrupt_binary_dxf_is_a_parse_error():
    # header magic, then a group code 10 whose double is cut off
    truncated = b"AutoCAD Binary DXF\r\n\x1a\x00" + b"\x00SECTION\x00\x02ENTITIES\x00\x0a\x01"

    with pytest.raises(ParseError) as excinfo:
        read_dxf(truncated)

    assert excinfo.value.line == 1
    assert excinfo.value.message.startswith("Binary DXF could not be read")


def test_both_readers_share_the_z_policy(ezdxf_drawing):
    msp = ezdxf_drawing.modelspace()
    msp.add_line((0, 0, 0), (1, 1, 0), dxfattribs={"layer": "Flat"})
    msp.add_line((0, 0, 7.5), (1, 1, 7.5), dxfattribs={"layer": "Raised"})
    stream = io.StringIO()
    ezdxf_drawing.write(stream)

    parsed = read_dxf(stream.getvalue().encode("utf-8"))
    mapped = ezdxf_fallback.structure_from_document(ezdxf_drawing)

    def line_starts(structure):
        return {e.layer: e.start for e in structure.entities if e.dxftype == "LINE"}

    assert parsed.source == "parser"
    assert line_starts(parsed) == line_starts(mapped)
    assert line_starts(parsed)["Flat"].z is None
    assert line_starts(parsed)["Raised"].z == 7.5
