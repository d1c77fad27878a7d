"""
Equality saturation with e-class analyses.
"""

from .analysis import *
from .declarations import *
from .egraph import *
from .extract import *
from .linear import *
from .pattern import *
from .polynomial import *
from .rewrite import *
from .rules import *
from .runner import *
from .scheduler import *
from .sexp import *
from .unionfind import *
