"""
Configuration for region detection.

Defines sampling resolution and numeric tolerances used by the
intersection solver, the region finder and the visibility tracer.
"""

from dataclasses import dataclass
import json
from pathlib import Path


@dataclass
class RegionConfig:
    """
    Tuning parameters for intersection solving and region detection.

    Attributes:
        num_samples: Samples taken when scanning for roots of f1 - f2
        tolerance: Root tolerance for bisection and duplicate suppression
        max_iterations: Bisection iteration cap
        on_line_tolerance: Slack for "point lies on element" checks
        parallel_tolerance: Determinant below which two lines are parallel
        sweep_samples: Steps across the axes width when sweeping a region
        num_base_rays: Rays cast by the visibility tracer
        max_refine_depth: Angle bisection depth between rays with different owners
        max_arc_points: Vertices kept when following a curve between two hits
    """
    # Intersection solver
    num_samples: int = 200
    tolerance: float = 1e-4
    max_iterations: int = 50

    # Boundary tests
    on_line_tolerance: float = 1e-3
    parallel_tolerance: float = 1e-4

    # Region sweep
    sweep_samples: int = 200

    # Visibility tracer
    num_base_rays: int = 120
    max_refine_depth: int = 6
    max_arc_points: int = 30

    def validate(self) -> list[str]:
        """
        Validate configuration values.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        if self.num_samples < 2:
            errors.append(f"num_samples must be >= 2, got {self.num_samples}")
        if self.num_samples > 10000:
            errors.append(f"num_samples {self.num_samples} is excessive (max recommended: 10000)")

        if self.tolerance <= 0:
            errors.append(f"tolerance must be positive, got {self.tolerance}")

        if self.max_iterations < 1:
            errors.append(f"max_iterations must be >= 1, got {self.max_iterations}")

        if self.on_line_tolerance < 0:
            errors.append(f"on_line_tolerance cannot be negative, got {self.on_line_tolerance}")

        if self.parallel_tolerance <= 0:
            errors.append(f"parallel_tolerance must be positive, got {self.parallel_tolerance}")

        if self.sweep_samples < 2:
            errors.append(f"sweep_samples must be >= 2, got {self.sweep_samples}")

        if self.num_base_rays < 8:
            errors.append(f"num_base_rays must be >= 8, got {self.num_base_rays}")

        if self.max_refine_depth < 0:
            errors.append(f"max_refine_depth cannot be negative, got {self.max_refine_depth}")

        if self.max_arc_points < 1:
            errors.append(f"max_arc_points must be >= 1, got {self.max_arc_points}")

        return errors

    @property
    def is_valid(self) -> bool:
        return not self.validate()

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "num_samples": self.num_samples,
            "tolerance": self.tolerance,
            "max_iterations": self.max_iterations,
            "on_line_tolerance": self.on_line_tolerance,
            "parallel_tolerance": self.parallel_tolerance,
            "sweep_samples": self.sweep_samples,
            "num_base_rays": self.num_base_rays,
            "max_refine_depth": self.max_refine_depth,
            "max_arc_points": self.max_arc_points,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RegionConfig":
        """Create from dictionary. Missing keys keep their defaults."""
        defaults = cls()
        return cls(
            num_samples=int(data.get("num_samples", defaults.num_samples)),
            tolerance=float(data.get("tolerance", defaults.tolerance)),
            max_iterations=int(data.get("max_iterations", defaults.max_iterations)),
            on_line_tolerance=float(data.get("on_line_tolerance", defaults.on_line_tolerance)),
            parallel_tolerance=float(data.get("parallel_tolerance", defaults.parallel_tolerance)),
            sweep_samples=int(data.get("sweep_samples", defaults.sweep_samples)),
            num_base_rays=int(data.get("num_base_rays", defaults.num_base_rays)),
            max_refine_depth=int(data.get("max_refine_depth", defaults.max_refine_depth)),
            max_arc_points=int(data.get("max_arc_points", defaults.max_arc_points)),
        )

    def save(self, filepath: Path | str) -> None:
        """Save configuration to JSON file."""
        filepath = Path(filepath)
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, filepath: Path | str) -> "RegionConfig":
        """Load configuration from JSON file."""
        filepath = Path(filepath)
        if not filepath.exists():
            return cls()  # Return defaults if file doesn't exist

        with open(filepath, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)

    @classmethod
    def preset(cls, name: str) -> "RegionConfig":
        """Build a config from one of PRECISION_PRESETS."""
        if name not in PRECISION_PRESETS:
            raise ValueError(f"Unknown precision preset: {name}")
        return cls.from_dict(PRECISION_PRESETS[name])


DEFAULT_CONFIG = RegionConfig()

# Trade accuracy for speed during drags, or the reverse for final rendering
PRECISION_PRESETS = {
    "drag": {"num_samples": 100, "sweep_samples": 100, "num_base_rays": 60, "max_refine_depth": 4},
    "default": {},
    "fine": {"num_samples": 400, "sweep_samples": 400, "num_base_rays": 240, "tolerance": 1e-6},
}
