import pytest
from hypothesis import settings

from eqsat import *

# Saturating an e-graph in a property test easily takes longer than hypothesis' default deadline
settings.register_profile("eqsat", deadline=None, max_examples=50)
settings.load_profile("eqsat")


@pytest.fixture
def egraph() -> EGraph:
    return EGraph()


@pytest.fixture
def linear_egraph() -> EGraph:
    return EGraph(LinearArith())


@pytest.fixture
def polynomial_egraph() -> EGraph:
    return EGraph(PolynomialArith())
