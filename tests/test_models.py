"""Tests for autodiag/models.py."""

import json

from autodiag.models import AnalysisResult, DiagnosticReport, DtcRecord


def test_analysis_result_from_loose_payload():
    data = {
        "vehicul": "not a dict",
        "pas_1_erori_initiale": [
            {"cod": "P0301", "descriere": "Rateu", "cauza_posibila": None, "recomandare": 5},
            "garbage",
        ],
        "concluzie": "  Motor ok  ",
        "todo": [{"text": "Primul"}, "Al doilea", {"nr": "9", "text": ""}],
    }
    result = AnalysisResult.from_dict(data)

    assert result.vehicle.brand is None
    assert len(result.initial_errors) == 1
    assert result.initial_errors[0].possible_cause == ""
    assert result.initial_errors[0].recommendation == "5"
    assert result.conclusion == "Motor ok"
    assert [(t.nr, t.text) for t in result.todo] == [("1", "Primul"), ("2", "Al doilea")]


def test_analysis_result_wire_format():
    data = {
        "vehicul": {"brand": "Dacia", "model": "Logan", "an": "2017", "motorizare": None,
                    "kilometraj": "98000 km", "data_scanarii": "2024-05-12"},
        "pas_1_erori_initiale": [
            {"cod": "P0301", "descriere": "a", "cauza_posibila": "b", "recomandare": "c"},
        ],
        "concluzie": "d",
        "todo": [{"nr": "1", "text": "e"}],
    }
    result = AnalysisResult.from_dict(data)
    assert result.to_dict() == data
    assert json.loads(result.to_json()) == data


def test_dtc_wire_keys():
    dtc = DtcRecord(module="ABS", code="5C31", raw_description="Senzor", status="Memory")
    assert dtc.to_dict() == {"cod": "5C31", "modul": "ABS", "descriere_bruta": "Senzor"}

    report = DiagnosticReport(vin="X", dtcs=(dtc,))
    assert report.to_dict()["dtcs"][0]["status"] == "Memory"
