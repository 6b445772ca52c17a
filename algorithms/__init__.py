from .math_tools import MathTools, StrengthTier
from .weight_converter import WeightConverter
from . import nutrition

__all__ = ["MathTools", "StrengthTier", "WeightConverter", "nutrition"]
