import logging
from dataclasses import dataclass, field, fields
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_PRECISION = Decimal("1e-6")

SUPPORTED_QUOTA_METHODS = ("droop",)
SUPPORTED_SURPLUS_METHODS = ("fractional", "gregory")

# Advertised by contest configurations but not implemented by this engine
UNIMPLEMENTED_METHODS = ("meek", "droop-surplus-first", "hare")


class TieBreak(str, Enum):
    LEXICOGRAPHIC = "lexicographic"
    RANDOM = "random"


def _to_decimal(value: Any, name: str) -> Decimal:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    try:
        # str() first so floats like 1e-6 keep their written value
        return value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from e


def _check_method(value: Any, supported: tuple, kind: str) -> str:
    method = str(value).lower()
    if method in supported:
        return method
    if method in UNIMPLEMENTED_METHODS:
        raise ConfigurationError(
            f"{kind} method {value!r} is advertised by contest configurations "
            f"but not implemented; supported: {', '.join(supported)}"
        )
    raise ConfigurationError(
        f"Unknown {kind.lower()} method {value!r}; supported: {', '.join(supported)}"
    )


@dataclass(frozen=True)
class Rules:
    """
    Counting rules for one contest.

    Passed explicitly to the tabulator; never read from the environment.

    Attributes:
        seats: Number of seats to fill
        quota_method: Only "droop" is implemented
        surplus_method: Only "fractional" (Gregory one-shot transfer) is implemented
        precision: Epsilon used for every quota and equality comparison
        tie_break: How ties for elimination or election order are resolved
        random_seed: Seed for the random tie-break, required when tie_break is random
    """

    seats: int
    quota_method: str = "droop"
    surplus_method: str = "fractional"
    precision: Decimal = field(default=DEFAULT_PRECISION)
    tie_break: TieBreak = TieBreak.LEXICOGRAPHIC
    random_seed: Optional[int] = None

    def __post_init__(self):
        if (
            isinstance(self.seats, bool)
            or not isinstance(self.seats, int)
            or self.seats <= 0
        ):
            raise ConfigurationError(
                f"seats must be a positive integer, got {self.seats!r}"
            )

        quota_method = _check_method(
            self.quota_method, SUPPORTED_QUOTA_METHODS, "Quota"
        )
        surplus_method = _check_method(
            self.surplus_method, SUPPORTED_SURPLUS_METHODS, "Surplus"
        )
        if surplus_method == "gregory":
            surplus_method = "fractional"

        precision = _to_decimal(self.precision, "precision")
        if not precision.is_finite() or precision <= 0:
            raise ConfigurationError(
                f"precision must be a positive number, got {self.precision!r}"
            )

        try:
            tie_break_value = getattr(self.tie_break, "value", self.tie_break)
            tie_break = TieBreak(str(tie_break_value).lower())
        except ValueError as e:
            raise ConfigurationError(
                f"Unknown tie_break {self.tie_break!r}; expected one of "
                f"{', '.join(t.value for t in TieBreak)}"
            ) from e

        if tie_break is TieBreak.RANDOM:
            if isinstance(self.random_seed, bool) or not isinstance(
                self.random_seed, int
            ):
                raise ConfigurationError(
                    "random tie_break requires an integer random_seed"
                )
            if self.random_seed < 0:
                raise ConfigurationError(
                    f"random_seed must be non-negative, got {self.random_seed}"
                )

        # Frozen dataclass: normalized values go in through object.__setattr__
        object.__setattr__(self, "quota_method", quota_method)
        object.__setattr__(self, "surplus_method", surplus_method)
        object.__setattr__(self, "precision", precision)
        object.__setattr__(self, "tie_break", tie_break)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Rules":
        """
        Build rules from a configuration mapping.

        Accepts the contest rules vocabulary, where the quota method is keyed
        as ``quota``. Unknown keys are rejected.
        """
        values = dict(data)
        if "quota" in values and "quota_method" not in values:
            values["quota_method"] = values.pop("quota")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigurationError(f"Unknown rules keys: {', '.join(unknown)}")
        if "seats" not in values:
            raise ConfigurationError("Rules must specify seats")

        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seats": self.seats,
            "quota": self.quota_method,
            "surplus_method": self.surplus_method,
            "precision": float(self.precision),
            "tie_break": self.tie_break.value,
            "random_seed": self.random_seed,
        }


def load_rules(path: Union[str, Path], **overrides: Any) -> Rules:
    """
    Load contest rules from a YAML file.

    Args:
        path: Path to a rules.yaml file
        **overrides: Values that take precedence over the file (None values are ignored)

    Returns:
        Validated Rules
    """
    rules_path = Path(path)
    if not rules_path.exists():
        raise FileNotFoundError(f"Rules file not found: {rules_path}")

    logger.info(f"Loading rules from: {rules_path}")
    with open(rules_path, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigurationError(f"Rules file {rules_path} must contain a mapping")

    data.update({key: value for key, value in overrides.items() if value is not None})
    return Rules.from_dict(data)
