from errors import InvalidInput


class WeightConverter:
    """Utility for converting between kg and lb and other mass units."""

    KG_TO_LB = 2.20462

    # Grams per unit. Volume units assume the density of water.
    UNIT_TO_GRAM = {
        "µg": 1e-6,
        "mg": 1e-3,
        "g": 1.0,
        "kg": 1000.0,
        "oz": 28.3495,
        "lb": 453.592,
        "t": 1e6,
        "ml": 1.0,
        "l": 1000.0,
        "fl_oz": 29.5735,
        "cup": 236.588,
        "pt": 473.176,
        "qt": 946.353,
        "gal": 3785.41,
        "tsp": 4.92892,
        "tbsp": 14.7868,
        "1/4_cup": 59.1470,
        "1/3_cup": 78.8627,
        "1/2_cup": 118.294,
    }

    @staticmethod
    def kg_to_lb(kg: float) -> float:
        return round(kg * WeightConverter.KG_TO_LB, 2)

    @staticmethod
    def lb_to_kg(lb: float) -> float:
        return round(lb / WeightConverter.KG_TO_LB, 2)

    @classmethod
    def convert(cls, value: float, from_unit: str, to_unit: str) -> float:
        """Convert ``value`` between any two units of ``UNIT_TO_GRAM``."""
        if from_unit not in cls.UNIT_TO_GRAM:
            raise InvalidInput(f"unsupported source unit: {from_unit}")
        if to_unit not in cls.UNIT_TO_GRAM:
            raise InvalidInput(f"unsupported target unit: {to_unit}")
        return value * cls.UNIT_TO_GRAM[from_unit] / cls.UNIT_TO_GRAM[to_unit]
