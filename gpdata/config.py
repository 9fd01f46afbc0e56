"""
Immutable configuration for GP dataset generation.

All settings are fixed when the pipeline is invoked and passed through it
explicitly; stages return values instead of sharing state.

Frames and conventions:
    - World frame w, camera frame c, target (object) frame o.
    - Camera optical axis is its z-axis (X-right, Y-down, Z-forward).
    - The default camera sits at [0, -5, 0] looking along world +y, so the
      target starts 5 m in front of it. The target oscillates in the world
      x-y plane.
    - Twists are [v; ω] in body coordinates.

Configurations round-trip through JSON with config_to_dict() /
config_from_dict() / load_config().

Author: Navigation Engineer
Date: October 2026
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np

from gpdata.coords.se3 import is_rotation_matrix, merge_pose
from gpdata.estimators.visual_motion_observer import (
    validate_feature_points,
    validate_observer_gain,
)
from gpdata.gp.covariance import COVARIANCE_FUNCTIONS
from gpdata.gp.types import FIT_MODES
from gpdata.sim.integrators import STEP_FUNCTIONS


# Camera looking along world +y: x_c = x_w, y_c = -z_w, z_c = y_w
CAMERA_LOOKING_ALONG_Y = np.array(
    [
        [1.0, 0.0, 0.0],
        [0.0, 0.0, 1.0],
        [0.0, -1.0, 0.0],
    ]
)

# Four coplanar feature points on the target (object frame, meters)
DEFAULT_FEATURE_POINTS = np.array(
    [
        [0.0, 0.0, 0.5],
        [0.5, 0.0, 0.0],
        [0.0, 0.0, -0.5],
        [-0.5, 0.0, 0.0],
    ]
)


def _frozen_array(value: Any, shape: Optional[Tuple[int, ...]] = None, label: str = "") -> np.ndarray:
    arr = np.array(value, dtype=float)
    if shape is not None and arr.shape != shape:
        raise ValueError(f"{label} must have shape {shape}, got {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{label} must be finite")
    arr.setflags(write=False)
    return arr


def _check_pose(g: np.ndarray, label: str) -> None:
    if not is_rotation_matrix(g[:3, :3]):
        raise ValueError(f"{label} rotation block must be a rotation matrix")
    if not np.allclose(g[3], [0.0, 0.0, 0.0, 1.0]):
        raise ValueError(f"{label} must be a homogeneous transform")


@dataclass(frozen=True, eq=False)
class OscillatorParams:
    """
    Van-der-Pol trajectory parameters.

    Attributes:
        eta: Nonlinearity η.
        v: Time scale (speed along the cycle), positive.
        offset: Oscillator center in the world frame, shape (3,).
        scale: Spatial scale, positive.
    """

    eta: float
    v: float
    offset: np.ndarray = field(default_factory=lambda: np.array([2.0, 0.0, 0.0]))
    scale: float = 1.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "offset", _frozen_array(self.offset, (3,), "offset"))
        if not np.isfinite(self.eta):
            raise ValueError(f"eta must be finite, got {self.eta}")
        if not self.v > 0:
            raise ValueError(f"v must be positive, got {self.v}")
        if not self.scale > 0:
            raise ValueError(f"scale must be positive, got {self.scale}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "eta": float(self.eta),
            "v": float(self.v),
            "offset": self.offset.tolist(),
            "scale": float(self.scale),
        }


@dataclass(frozen=True, eq=False)
class TrajectoryConfig:
    """
    One simulated trajectory and how its dataset is drawn.

    Attributes:
        name: Identifier (used in file metadata and error context).
        oscillator: Van-der-Pol parameters.
        sample_count: Number of training samples M.
        window: Sampling window (t_start, t_end) in seconds.
        noise_std: Noise parameter σ per output channel, shape (6,).
    """

    name: str
    oscillator: OscillatorParams
    sample_count: int = 30
    window: Tuple[float, float] = (0.0, 20.0)
    noise_std: np.ndarray = field(default_factory=lambda: np.full(6, 1e-2))

    def __post_init__(self) -> None:
        noise = np.array(self.noise_std, dtype=float)
        if noise.ndim == 0:
            noise = np.full(6, float(noise))
        object.__setattr__(self, "noise_std", _frozen_array(noise, (6,), "noise_std"))
        if np.any(self.noise_std < 0):
            raise ValueError("noise_std must be non-negative")
        window = tuple(float(t) for t in self.window)
        if len(window) != 2 or window[1] < window[0] or window[0] < 0:
            raise ValueError(f"window must be (t_start, t_end) with 0 <= t_start <= t_end, got {window}")
        object.__setattr__(self, "window", window)
        if int(self.sample_count) < 1:
            raise ValueError(f"sample_count must be >= 1, got {self.sample_count}")
        object.__setattr__(self, "sample_count", int(self.sample_count))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "oscillator": self.oscillator.to_dict(),
            "sample_count": self.sample_count,
            "window": list(self.window),
            "noise_std": self.noise_std.tolist(),
        }


@dataclass(frozen=True, eq=False)
class ObserverConfig:
    """
    Visual Motion Observer settings.

    Attributes:
        gain: Observer gain K_e, symmetric positive definite (6, 6).
        focal_length: Focal length λ, positive.
        feature_points: Target-frame feature points, (N, 3), N >= 3, not
                        collinear.
        g_co_init: Initial relative pose estimate, (4, 4).
    """

    gain: np.ndarray = field(default_factory=lambda: 30.0 * np.eye(6))
    focal_length: float = 20.0
    feature_points: np.ndarray = field(default_factory=lambda: DEFAULT_FEATURE_POINTS.copy())
    g_co_init: np.ndarray = field(
        default_factory=lambda: merge_pose(CAMERA_LOOKING_ALONG_Y.T, [0.0, 0.0, 1.0])
    )

    def __post_init__(self) -> None:
        gain = validate_observer_gain(self.gain)
        gain.setflags(write=False)
        object.__setattr__(self, "gain", gain)
        points = validate_feature_points(self.feature_points)
        points.setflags(write=False)
        object.__setattr__(self, "feature_points", points)
        if not self.focal_length > 0:
            raise ValueError(f"focal_length must be positive, got {self.focal_length}")
        g = _frozen_array(self.g_co_init, (4, 4), "g_co_init")
        _check_pose(g, "g_co_init")
        object.__setattr__(self, "g_co_init", g)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gain": self.gain.tolist(),
            "focal_length": float(self.focal_length),
            "feature_points": self.feature_points.tolist(),
            "g_co_init": self.g_co_init.tolist(),
        }


@dataclass(frozen=True, eq=False)
class GPDataConfig:
    """
    Complete configuration of the dataset generation pipeline.

    Attributes:
        observer: Observer settings.
        trajectories: Exactly two trajectory configurations.
        g_wc: Camera pose in the world frame (static), (4, 4).
        p_wo_init: Initial target position, (3,).
        R_wo_init: Target orientation (constant), (3, 3).
        duration: Simulation horizon in seconds.
        dt: Fixed simulation step in seconds.
        plane: World axes spanned by the oscillator.
        integrator: 'rk4' or 'euler' for the target dynamics.
        covariance: Covariance function name ('SEard' or 'SEiso').
        hyperparameter_mode: 'per_channel' or 'shared'.
        learn_noise: Optimize the noise variance jointly (True) or keep it
                     fixed at the noise level (False).
        max_iter: Optimizer iteration budget per hyperparameter set.
        seed: Seed for noise injection. None draws fresh entropy and the
              datasets are then not reproducible.
    """

    observer: ObserverConfig
    trajectories: Tuple[TrajectoryConfig, ...]
    g_wc: np.ndarray = field(
        default_factory=lambda: merge_pose(CAMERA_LOOKING_ALONG_Y, [0.0, -5.0, 0.0])
    )
    p_wo_init: np.ndarray = field(default_factory=lambda: np.zeros(3))
    R_wo_init: np.ndarray = field(default_factory=lambda: np.eye(3))
    duration: float = 20.0
    dt: float = 1e-3
    plane: Tuple[int, int] = (0, 1)
    integrator: str = "rk4"
    covariance: str = "SEard"
    hyperparameter_mode: str = "per_channel"
    learn_noise: bool = True
    max_iter: int = 500
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        trajectories = tuple(self.trajectories)
        if len(trajectories) != 2:
            raise ValueError(f"exactly two trajectories are required, got {len(trajectories)}")
        names = [t.name for t in trajectories]
        if len(set(names)) != len(names):
            raise ValueError(f"trajectory names must be unique, got {names}")
        object.__setattr__(self, "trajectories", trajectories)

        g_wc = _frozen_array(self.g_wc, (4, 4), "g_wc")
        _check_pose(g_wc, "g_wc")
        object.__setattr__(self, "g_wc", g_wc)
        object.__setattr__(self, "p_wo_init", _frozen_array(self.p_wo_init, (3,), "p_wo_init"))
        R_wo = _frozen_array(self.R_wo_init, (3, 3), "R_wo_init")
        if not is_rotation_matrix(R_wo):
            raise ValueError("R_wo_init must be a rotation matrix")
        object.__setattr__(self, "R_wo_init", R_wo)
        object.__setattr__(self, "plane", tuple(int(a) for a in self.plane))

        if not self.duration > 0:
            raise ValueError(f"duration must be positive, got {self.duration}")
        if not self.dt > 0 or self.dt > self.duration:
            raise ValueError(f"dt must be in (0, duration], got {self.dt}")
        for traj in trajectories:
            if traj.window[1] > self.duration + 1e-9:
                raise ValueError(
                    f"window of '{traj.name}' ends at {traj.window[1]} s, after the "
                    f"{self.duration} s horizon"
                )
        if self.integrator not in STEP_FUNCTIONS:
            raise ValueError(f"integrator must be one of {sorted(STEP_FUNCTIONS)}")
        if self.covariance not in COVARIANCE_FUNCTIONS:
            raise ValueError(f"covariance must be one of {sorted(COVARIANCE_FUNCTIONS)}")
        if self.hyperparameter_mode not in FIT_MODES:
            raise ValueError(f"hyperparameter_mode must be one of {FIT_MODES}")
        if int(self.max_iter) < 1:
            raise ValueError(f"max_iter must be >= 1, got {self.max_iter}")
        if self.seed is not None and int(self.seed) < 0:
            raise ValueError(f"seed must be non-negative, got {self.seed}")

    @property
    def n_steps(self) -> int:
        """Number of integration steps over the horizon."""
        return int(round(self.duration / self.dt))


def default_config(seed: Optional[int] = None, dt: float = 1e-3) -> GPDataConfig:
    """
    Settings of the published cold-run experiment.

    Observer gain K_e = 30·I₆, focal length λ = 20, four feature points,
    Van-der-Pol trajectories (η, v) = (0.5, 1) and (1.5, 0.5) centered at
    [2, 0, 0] with unit scale, 20 s horizon, 30 samples each from the
    windows [7, 13] s and [6, 20] s, and σ = 1e-2 on every channel.

    Args:
        seed: Noise seed. None leaves the noise unseeded.
        dt: Simulation step in seconds.

    Returns:
        GPDataConfig.
    """
    return GPDataConfig(
        observer=ObserverConfig(),
        trajectories=(
            TrajectoryConfig(
                name="vanderpol_1",
                oscillator=OscillatorParams(eta=0.5, v=1.0, offset=[2.0, 0.0, 0.0], scale=1.0),
                sample_count=30,
                window=(7.0, 13.0),
                noise_std=np.full(6, 1e-2),
            ),
            TrajectoryConfig(
                name="vanderpol_2",
                oscillator=OscillatorParams(eta=1.5, v=0.5, offset=[2.0, 0.0, 0.0], scale=1.0),
                sample_count=30,
                window=(6.0, 20.0),
                noise_std=np.full(6, 1e-2),
            ),
        ),
        duration=20.0,
        dt=dt,
        seed=seed,
    )


def config_to_dict(config: GPDataConfig) -> Dict[str, Any]:
    """JSON-serializable representation of a configuration."""
    return {
        "observer": config.observer.to_dict(),
        "trajectories": [t.to_dict() for t in config.trajectories],
        "g_wc": config.g_wc.tolist(),
        "p_wo_init": config.p_wo_init.tolist(),
        "R_wo_init": config.R_wo_init.tolist(),
        "duration": float(config.duration),
        "dt": float(config.dt),
        "plane": list(config.plane),
        "integrator": config.integrator,
        "covariance": config.covariance,
        "hyperparameter_mode": config.hyperparameter_mode,
        "learn_noise": bool(config.learn_noise),
        "max_iter": int(config.max_iter),
        "seed": config.seed,
    }


def config_from_dict(data: Dict[str, Any]) -> GPDataConfig:
    """
    Build a configuration from a dictionary (e.g. parsed JSON).

    Missing optional keys fall back to the defaults of default_config().

    Args:
        data: Dictionary with the keys produced by config_to_dict().

    Returns:
        GPDataConfig.

    Raises:
        KeyError: If 'trajectories' is missing.
        ValueError: If values are invalid.
    """
    observer_data = data.get("observer", {})
    observer = ObserverConfig(
        **{
            key: observer_data[key]
            for key in ("gain", "focal_length", "feature_points", "g_co_init")
            if key in observer_data
        }
    )

    trajectories = []
    for item in data["trajectories"]:
        oscillator = OscillatorParams(**item["oscillator"])
        trajectories.append(
            TrajectoryConfig(
                name=item["name"],
                oscillator=oscillator,
                sample_count=item.get("sample_count", 30),
                window=tuple(item.get("window", (0.0, 20.0))),
                noise_std=item.get("noise_std", np.full(6, 1e-2)),
            )
        )

    optional = {
        key: data[key]
        for key in (
            "g_wc",
            "p_wo_init",
            "R_wo_init",
            "duration",
            "dt",
            "plane",
            "integrator",
            "covariance",
            "hyperparameter_mode",
            "learn_noise",
            "max_iter",
            "seed",
        )
        if key in data
    }
    return GPDataConfig(observer=observer, trajectories=tuple(trajectories), **optional)


def load_config(path: Union[str, Path]) -> GPDataConfig:
    """Load a configuration from a JSON file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return config_from_dict(json.load(f))


def save_config(config: GPDataConfig, path: Union[str, Path]) -> None:
    """Write a configuration to a JSON file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config_to_dict(config), f, indent=2)
