"""单元测试公共 Fixtures。"""

import numpy as np
import pytest

from network_helpers import build_diamond


@pytest.fixture
def diamond():
    return build_diamond()


@pytest.fixture
def diamond_with_disconnected():
    return build_diamond(with_disconnected=True)


@pytest.fixture
def lanes():
    return np.array([1.0, 2.0, 3.0])
