"""Configuration loading from TOML files."""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

PROJECT_DIR = Path(__file__).resolve().parent.parent.parent
CONFIG_DIR = PROJECT_DIR / "config"

_logger = logging.getLogger(__name__)


@dataclass
class IHWConfig:
    alpha: float = 0.1
    nfolds: int = 5
    nbins: int = 0  # 0 = choose from the number of hypotheses
    adjustment_type: str = "BH"
    ties_method: str = "random"
    refine_iterations: int = 10
    null_proportion: bool = False
    seed: int | None = None

    def ihw_kwargs(self) -> dict:
        """Keyword arguments for ``ihw.ihw`` (everything but p-values and covariates)."""
        return {
            "alpha": self.alpha,
            "nbins": self.nbins or None,
            "nfolds": self.nfolds,
            "adjustment_type": self.adjustment_type,
            "ties_method": self.ties_method,
            "refine_iterations": self.refine_iterations,
            "null_proportion": self.null_proportion,
            "seed": self.seed,
        }


@dataclass
class SimulationConfig:
    n_hypotheses: int = 100_000
    alternative_fraction: float = 0.1
    covariate_max: float = 2.5
    seed: int = 1


@dataclass
class Config:
    ihw: IHWConfig = field(default_factory=IHWConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> Config:
        if path is None:
            path = CONFIG_DIR / "default.toml"
        if not path.exists():
            _logger.debug("No config at %s, using defaults", path)
            return cls()
        with open(path, "rb") as f:
            raw = tomllib.load(f)
        return cls(
            ihw=IHWConfig(**raw.get("ihw", {})),
            simulation=SimulationConfig(**raw.get("simulation", {})),
        )
