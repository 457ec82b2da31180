import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from config import Settings


@pytest.fixture
def fast_settings() -> Settings:
    return Settings(page_delay_ms=0, detail_delay_ms=0, curl_fallback=False)
