"""analysis_response スキーマの契約テスト。

観点:
    - JSON Schema(Draft7) としての妥当性
    - 閉じたスキーマ（additionalProperties=false）と各種制約の固定
    - 正常/異常ペイロードでの検証動作
"""

import json
from pathlib import Path
import sys

import jsonschema
import pytest

SCHEMA_PATH = Path(__file__).parent.parent.parent / "src/contracts/analysis_response.schema.json"

VALID_PAYLOAD = {
    "analise": {
        "fatos": ["Relata cansaço."],
        "inferencias": [{"afirmacao": "Há desgaste.", "justificativa": "Cansaço citado."}],
        "hipoteses": ["Sobrecarga."],
    },
    "metricas": {
        "risco_emocional": 4.0,
        "indice_manipulacao": 0.0,
        "ambivalencia": 2.5,
        "coerencia_interna": 10.0,
    },
    "justificativa": "Baseado no texto.",
    "timestamp": "2026-02-28T00:00:00+00:00",
    "engine_version": "1.0.0",
}


@pytest.fixture
def schema():
    """検証対象の JSON Schema を読み込む。"""
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def test_schema_file_exists():
    """スキーマファイルが存在することを確認する。"""
    assert SCHEMA_PATH.exists()


def test_schema_is_valid_json_schema(schema):
    """JSON Schema として正しい構造であることを確認する。"""
    jsonschema.Draft7Validator.check_schema(schema)


def test_required_fields_defined(schema):
    """トップレベルの必須フィールドが5項目であることを確認する。"""
    assert set(schema["required"]) == {
        "analise",
        "metricas",
        "justificativa",
        "timestamp",
        "engine_version",
    }


def test_schema_is_closed_at_every_object(schema):
    """全ての object で追加プロパティが禁止されていることを確認する。"""
    assert schema["additionalProperties"] is False
    assert schema["properties"]["analise"]["additionalProperties"] is False
    assert schema["properties"]["metricas"]["additionalProperties"] is False
    inference_object = schema["properties"]["analise"]["properties"]["inferencias"]["items"]["oneOf"][0]
    assert inference_object["additionalProperties"] is False


def test_metric_ranges(schema):
    """各メトリクスの範囲が 0〜10 であることを確認する。"""
    metrics = schema["properties"]["metricas"]
    assert len(metrics["required"]) == 4
    for name in metrics["required"]:
        assert metrics["properties"][name]["minimum"] == 0
        assert metrics["properties"][name]["maximum"] == 10


def test_timestamp_is_date_time(schema):
    """timestamp が date-time 形式であることを確認する。"""
    assert schema["properties"]["timestamp"]["format"] == "date-time"


def test_valid_payload_passes(schema):
    """正常なペイロードが検証を通過することを確認する。"""
    jsonschema.validate(VALID_PAYLOAD, schema)


def test_plain_string_inference_passes(schema):
    """inferencias の要素が文字列でも通過することを確認する。"""
    payload = json.loads(json.dumps(VALID_PAYLOAD))
    payload["analise"]["inferencias"] = ["Inferência simples."]
    jsonschema.validate(payload, schema)


def test_additional_top_level_field_fails(schema):
    """未宣言のトップレベル項目でエラーとなることを確認する。"""
    payload = dict(VALID_PAYLOAD, diagnostico="x")
    with pytest.raises(jsonschema.ValidationError):
        jsonschema.validate(payload, schema)


def test_metric_above_range_fails(schema):
    """範囲外のメトリクスでエラーとなることを確認する。"""
    payload = json.loads(json.dumps(VALID_PAYLOAD))
    payload["metricas"]["risco_emocional"] = 15
    with pytest.raises(jsonschema.ValidationError):
        jsonschema.validate(payload, schema)


def test_missing_metric_fails(schema):
    """メトリクス欠落時にエラーとなることを確認する。"""
    payload = json.loads(json.dumps(VALID_PAYLOAD))
    del payload["metricas"]["ambivalencia"]
    with pytest.raises(jsonschema.ValidationError):
        jsonschema.validate(payload, schema)


def test_validator_reads_this_schema_file():
    """Schema Gate が参照するパスがこの契約ファイルと一致することを確認する。"""
    from services.inference.validator import SCHEMA_PATH as GATE_SCHEMA_PATH

    assert GATE_SCHEMA_PATH == SCHEMA_PATH.resolve()


@pytest.mark.skipif(sys.version_info < (3, 11), reason="tomllib は Python 3.11 以降")
def test_schema_is_declared_as_package_data():
    """非 editable インストールでもスキーマが配布されるよう宣言されていることを確認する。"""
    import tomllib

    pyproject = Path(__file__).parent.parent.parent / "pyproject.toml"
    setuptools_config = tomllib.loads(pyproject.read_text(encoding="utf-8"))["tool"]["setuptools"]

    assert "contracts*" in setuptools_config["packages"]["find"]["include"]
    patterns = setuptools_config["package-data"]["contracts"]
    assert any(SCHEMA_PATH.match(pattern) for pattern in patterns)
