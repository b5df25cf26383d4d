"""統合テスト共通のフィクスチャを提供する。

Note:
    - モジュール単位で共有される app のレート制限カウンタをテストごとに破棄する
"""

import pytest

from services.api import main


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """各テストの前にレート制限カウンタを破棄する。"""
    main.rate_limiter.reset()
    yield
