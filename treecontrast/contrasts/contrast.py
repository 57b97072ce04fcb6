"""
Structured contrast representation.

A contrast maps level names to rational weights. Expressions such as
``Cl01-(Cl02+Cl03)/2`` are rendered from the weights for display and for
formula-based consumers; they are never parsed back internally.
"""

import numpy as np
from fractions import Fraction
from typing import Dict, Iterable, List, Optional, Sequence, Union


def group_expression(names: Sequence[str]) -> str:
    """Expression for the average of ``names``; a single name stays bare."""

    if len(names) == 0:
        raise ValueError("Cannot build an expression for an empty group")
    if len(names) == 1:
        return names[0]
    return f"({'+'.join(names)})/{len(names)}"


class Contrast:
    """
    Linear comparison between two groups of levels.

    Parameters:
    -----------
    weights : Dict[str, Fraction]
        Coefficient of each referenced level. Levels not listed have weight 0.
    expression : str
        Display form of the contrast.
    name : str, optional
        Contrast name. Dendrogram contrasts are unnamed.
    """

    def __init__(
        self,
        weights: Dict[str, Fraction],
        expression: str,
        name: Optional[str] = None,
    ):
        self.weights = {level: Fraction(w) for level, w in weights.items() if w != 0}
        self.expression = expression
        self.name = name

    @classmethod
    def difference(
        cls,
        left: Sequence[str],
        right: Sequence[str],
        name: Optional[str] = None,
    ) -> 'Contrast':
        """
        Average of ``left`` minus average of ``right``.

        Examples:
        --------
        >>> Contrast.difference(["Cl01", "Cl02"], ["Cl03"]).expression
        '(Cl01+Cl02)/2-Cl03'
        """

        left, right = list(left), list(right)
        if set(left) & set(right):
            raise ValueError(f"Levels {sorted(set(left) & set(right))} appear on both sides of the contrast")

        weights: Dict[str, Fraction] = {}
        for level in left:
            weights[level] = weights.get(level, Fraction(0)) + Fraction(1, len(left))
        for level in right:
            weights[level] = weights.get(level, Fraction(0)) - Fraction(1, len(right))

        expression = f"{group_expression(left)}-{group_expression(right)}"
        return cls(weights, expression, name)

    @property
    def levels(self) -> List[str]:
        """Levels with a nonzero weight."""

        return list(self.weights)

    @property
    def label(self) -> str:
        """Name if the contrast has one, else its expression."""

        return self.name if self.name else self.expression

    def coefficients(self, level_names: Sequence[str]) -> np.ndarray:
        """
        Coefficient vector over ``level_names``.

        Raises ValueError if the contrast references a level not in
        ``level_names``.
        """

        level_names = list(level_names)
        missing = [level for level in self.weights if level not in level_names]
        if missing:
            raise ValueError(f"Contrast '{self.expression}' references unknown levels {missing}. "
                             f"Available levels: {level_names}")
        return np.array([float(self.weights.get(level, 0)) for level in level_names])

    def is_balanced(self) -> bool:
        """Whether the weights sum to zero."""

        return sum(self.weights.values(), Fraction(0)) == 0

    def __eq__(self, other) -> bool:
        if not isinstance(other, Contrast):
            return NotImplemented
        return self.weights == other.weights and self.name == other.name

    def __hash__(self) -> int:
        return hash((frozenset(self.weights.items()), self.name))

    def __repr__(self) -> str:
        if self.name is None:
            return f"Contrast('{self.expression}')"
        return f"Contrast('{self.expression}', name='{self.name}')"


def contrast_labels(contrasts: Iterable[Contrast]) -> List[str]:
    """Expressions of ``contrasts``, used as matrix column labels."""

    return [c.expression for c in contrasts]


def contrast_names(contrasts: Iterable[Contrast]) -> Union[List[str], None]:
    """Names of ``contrasts``, or None when the contrasts are unnamed."""

    names = [c.name for c in contrasts]
    if all(n is None for n in names):
        return None
    return names
