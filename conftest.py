"""pytest 実行時に `src/` 配下を import 可能にする設定を提供する。

入出力: pytest起動時の初期化 -> sys.path 更新。
制約:
    - アプリ本体は `src/` 配下のみを探索対象にする
    - テストごとに個別パス設定を持ち込まない

Note:
    - `services.*` をテストから直接 import できる状態を維持する
    - 開発者の .env や環境変数の認証キーがテストへ混入しないよう空にする
"""

import os
import sys
from pathlib import Path

SRC_PATH = Path(__file__).parent / "src"

# テスト側から `services.*` を確実に参照できるよう先頭に追加する。
sys.path.insert(0, str(SRC_PATH))

# load_dotenv は既存の環境変数を上書きしないため、ここで空値を固定する。
os.environ["GEMINI_API_KEY"] = ""
os.environ["ENVIRONMENT"] = "test"
