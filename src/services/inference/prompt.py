"""Gemini へ送信するプロンプトを組み立てる PromptBuilder を提供する。

入出力: サニタイズ済みテキスト(str) -> CompiledPrompt。
制約:
    - I/O・乱数・時刻取得を行わない純粋関数として振る舞う
    - 振る舞いの規則は system instruction 側にのみ記述する

Note:
    - ユーザー入力は user prompt 内の区切りブロックにそのまま埋め込む
    - 期待スキーマは文字列リテラルとして毎回同一の内容を出力する
"""

from __future__ import annotations

from dataclasses import dataclass

SYSTEM_INSTRUCTION = """Você é um motor analítico de linguagem comportamental.
Sua função é analisar textos e retornar exclusivamente um objeto JSON válido.

REGRAS ABSOLUTAS:
1. Não gere aconselhamento psicológico ou emocional.
2. Não gere diagnóstico clínico de nenhum tipo.
3. Não invente dados ausentes no texto.
4. Justifique todas as inferências com referência ao texto.
5. Responda APENAS com JSON válido, sem markdown, sem texto antes ou depois.
6. Não use blocos de código como ```json — apenas o JSON puro.

DEFINIÇÕES:
- FATO: Informação explicitamente declarada no texto.
- INFERÊNCIA: Conclusão razoável baseada no texto, que deve ser justificada.
- HIPÓTESE: Possibilidade especulativa, sem base direta no texto.

MÉTRICAS (escala 0.0 a 10.0):
- risco_emocional: Intensidade de sofrimento emocional perceptível no texto.
- indice_manipulacao: Presença de padrões de manipulação ou coerção comunicativa.
- ambivalencia: Contradição ou inconsistência entre sentimentos/declarações.
- coerencia_interna: Consistência lógica entre as partes do discurso."""

_SCHEMA_TEMPLATE = """{{
  "analise": {{
    "fatos": ["string"],
    "inferencias": [{{"afirmacao": "string", "justificativa": "string"}}],
    "hipoteses": ["string"]
  }},
  "metricas": {{
    "risco_emocional": 0.0,
    "indice_manipulacao": 0.0,
    "ambivalencia": 0.0,
    "coerencia_interna": 0.0
  }},
  "justificativa": "Explicação geral do raciocínio analítico.",
  "timestamp": "ISO 8601",
  "engine_version": "{engine_version}"
}}"""

_USER_TEMPLATE = """Analise o seguinte texto comportamental e retorne EXCLUSIVAMENTE o JSON no formato especificado abaixo.

TEXTO PARA ANÁLISE:
---
{texto}
---

FORMATO DE RESPOSTA OBRIGATÓRIO:
{schema}

Lembre-se:
- Preencha o campo "timestamp" com a data/hora atual em ISO 8601.
- Preencha o campo "engine_version" com "{engine_version}".
- Todos os valores numéricos de métricas devem ser floats entre 0.0 e 10.0.
- Não adicione nenhum texto fora do JSON."""


@dataclass(frozen=True)
class CompiledPrompt:
    """Gemini 呼び出し用のプロンプト対。"""

    system_instruction: str
    user_prompt: str


class PromptBuilder:
    """サニタイズ済みテキストから CompiledPrompt を生成するクラス。"""

    def __init__(self, engine_version: str = "1.0.0") -> None:
        self.engine_version = engine_version

    def expected_schema(self) -> str:
        """モデルへ提示する出力形式の文字列を返す。"""
        return _SCHEMA_TEMPLATE.format(engine_version=self.engine_version)

    def build(self, text: str) -> CompiledPrompt:
        """プロンプトを組み立てる。

        Args:
            text: Sanitizer 通過済みのテキスト

        Returns:
            CompiledPrompt: 固定の system instruction と入力を埋め込んだ user prompt
        """
        # str.format は置換後の値を再解釈しないため、入力中の波括弧はそのまま残る。
        user_prompt = _USER_TEMPLATE.format(
            texto=text,
            schema=self.expected_schema(),
            engine_version=self.engine_version,
        )
        return CompiledPrompt(system_instruction=SYSTEM_INSTRUCTION, user_prompt=user_prompt)
