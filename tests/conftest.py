from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
for entry in (ROOT, ROOT / "src"):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))


import pytest

from totalmap import TotalHashMap, TotalOrderedMap
from totalmap.runtime.policy_runtime import RuntimePolicyConfig, runtime_policy_scope
from tests.env_helpers import clean_totalmap_env
from tests.env_helpers import env_scope as _env_scope


@pytest.fixture(autouse=True)
def _runtime_policy_fixture():
    with clean_totalmap_env():
        with runtime_policy_scope(RuntimePolicyConfig()):
            yield


@pytest.fixture(params=[TotalHashMap, TotalOrderedMap], ids=["hash", "ordered"])
def map_type(request):
    return request.param


@pytest.fixture
def env_scope():
    return _env_scope
