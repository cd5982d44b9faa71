"""
Run parameters for one MCMC chain.

Parameters can be given directly to MCMCConfig or read from a plain text file
with one ``name <- value`` assignment per line:

    # admixture run
    K <- 3
    lambda <- 1.0
    alpha <- 1.0
    fixAlpha_on <- false
    burnin <- 500
    samples <- 5000

Both the field names of MCMCConfig and the long-form names on the right of
PARAMETER_ALIASES are accepted.
"""

from __future__ import annotations

import logging
import numbers
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)

PARAMETER_ALIASES = {
    "lambda": "lam",
    "fixAlpha_on": "fix_alpha",
    "alphaPropSD": "alpha_prop_sd",
    "fixLabels_on": "fix_labels",
    "drawFreqs_on": "draw_freqs",
    "storeLoglike_on": "store_loglike",
    "outputPosteriorGrouping_on": "output_grouping",
    "outputQmatrix_pop_on": "qmatrix_pop",
}


def _coerce(value: str) -> Union[int, float, bool, str]:
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    try:
        return int(value)
    except ValueError:
        try:
            return float(value)
        except ValueError:
            return value  # keep as string


def _cast(name: str, value, ftype: str):
    """Convert ``value`` to the field type, raising ValueError rather than changing it."""
    if isinstance(value, str):
        value = _coerce(value.strip())
    if ftype == "bool":
        if isinstance(value, bool):
            return value
        if isinstance(value, numbers.Real) and value in (0, 1):
            return bool(value)
        raise ValueError(f"{name} must be true/false, got {value!r}")
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if ftype == "int":
        if int(value) != value:
            raise ValueError(f"{name} must be an integer, got {value!r}")
        return int(value)
    return float(value)


def parse_variables(file_path) -> Dict[str, Union[int, float, bool, str]]:
    """Read ``name <- value`` lines, skipping comments and blank lines."""
    variables = {}
    with open(file_path, "r") as file:
        for n_line, line in enumerate(file, start=1):
            if line.strip() == "" or line.lstrip().startswith("#"):
                continue
            if "<-" not in line:
                raise ValueError(f"{file_path}:{n_line}: expected 'name <- value', got {line.strip()!r}")
            name, value = line.split("<-", 1)
            variables[name.strip()] = _coerce(value.strip())
    return variables


@dataclass
class MCMCConfig:
    K: int
    lam: float = 1.0
    alpha: float = 1.0
    fix_alpha: bool = False
    alpha_prop_sd: float = 0.10
    beta: float = 1.0
    burnin: int = 100
    samples: int = 1000
    thinning: int = 1
    fix_labels: bool = True
    draw_freqs: bool = True
    store_loglike: bool = False
    output_grouping: bool = False
    qmatrix_pop: bool = False
    seed: Optional[int] = None

    def validate(self) -> "MCMCConfig":
        if int(self.K) != self.K or self.K < 1:
            raise ValueError(f"K must be a positive integer, got {self.K!r}")
        if self.lam <= 0:
            raise ValueError(f"lambda must be > 0, got {self.lam}")
        if not (0 < self.alpha <= 10):
            raise ValueError(f"alpha must lie in (0, 10], got {self.alpha}")
        if self.alpha_prop_sd < 0:
            raise ValueError(f"alpha_prop_sd must be >= 0, got {self.alpha_prop_sd}")
        if not (0 <= self.beta <= 1):
            raise ValueError(f"beta must lie in [0, 1], got {self.beta}")
        if self.burnin < 0:
            raise ValueError(f"burnin must be >= 0, got {self.burnin}")
        if self.samples < 1:
            raise ValueError(f"samples must be >= 1, got {self.samples}")
        if self.thinning < 1:
            raise ValueError(f"thinning must be >= 1, got {self.thinning}")
        return self

    @classmethod
    def from_dict(cls, values: Dict[str, object]) -> "MCMCConfig":
        known = {f.name: f for f in fields(cls)}
        kwargs = {}
        for name, value in values.items():
            key = PARAMETER_ALIASES.get(name, name)
            if key not in known:
                raise ValueError(f"Unknown parameter: {name}")
            kwargs[key] = value
        if "K" not in kwargs:
            raise KeyError("Missing required config key: K")

        for key, value in kwargs.items():
            if key == "seed":
                continue
            kwargs[key] = _cast(key, value, known[key].type)
        return cls(**kwargs).validate()

    @classmethod
    def from_file(cls, path_vars) -> "MCMCConfig":
        path_vars = Path(path_vars)
        cfg = cls.from_dict(parse_variables(path_vars))
        logger.info("Loaded MCMC parameters from %s", path_vars)
        return cfg
