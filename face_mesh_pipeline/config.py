"""
Configuration management for the face mesh pipeline.

Provides a layered configuration system with the following precedence
(highest to lowest):

    Environment variables > YAML config file > Defaults

Design constraints:
    - The system MUST run with zero configuration (safe defaults only).
    - Missing or invalid values fail early and loudly.
    - No tracking logic, I/O, or model loading belongs here.

Non-goals:
    - No dynamic reloading.
    - No database-backed or remote configuration.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project root resolution
# ---------------------------------------------------------------------------
# Resolved relative to this file's location: face_mesh_pipeline/config.py → repo root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def get_project_root() -> Path:
    """Return the resolved project root directory."""
    return _PROJECT_ROOT


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TrackingConfig:
    """Tracking and ROI policy. Immutable for a pipeline's lifetime.

    Attributes:
        mesh_width: Mesh model input width in pixels.
        mesh_height: Mesh model input height in pixels.
        max_continuous_checks: Track-only frames before the detector may
                               run again to look for more faces.
        max_faces: Maximum number of faces tracked at once.
        iou_threshold: Overlap above which a tracked ROI survives a
                       detector run unchanged.
        enlarge_factor: Margin applied to detector and landmark boxes.
        num_workers: Threads used for per-face landmark extraction.
                     1 runs slots sequentially.
    """

    mesh_width: int = 192
    mesh_height: int = 192
    max_continuous_checks: int = 5
    max_faces: int = 10
    iou_threshold: float = 0.25
    enlarge_factor: float = 1.5
    num_workers: int = 1


@dataclass(frozen=True)
class DetectorConfig:
    """Face detector model configuration.

    Attributes:
        prototxt_path: Path to the .prototxt network definition (relative to project root).
        weights_path: Path to the .caffemodel weights file (relative to project root).
        backend: Compute backend — 'cpu' or 'cuda'.
        input_size: Spatial dimensions (width, height) for the DNN input blob.
        mean_values: Per-channel mean subtraction values (BGR order).
        scale_factor: Pixel value scale factor applied during blob creation.
        confidence_threshold: Minimum confidence to accept a detection.
    """

    prototxt_path: str = "models/deploy.prototxt"
    weights_path: str = "models/res10_300x300_ssd_iter_140000.caffemodel"
    backend: str = "cpu"
    input_size: Tuple[int, int] = (300, 300)
    mean_values: Tuple[float, float, float] = (104.0, 177.0, 123.0)
    scale_factor: float = 1.0
    confidence_threshold: float = 0.5


@dataclass(frozen=True)
class MeshConfig:
    """Face mesh model configuration.

    Attributes:
        model_path: Path to the ONNX landmark model (relative to project root).
        backend: Compute backend — 'cpu' or 'cuda'.
        swap_rb: Convert BGR frames to RGB before inference.
    """

    model_path: str = "models/face_mesh.onnx"
    backend: str = "cpu"
    swap_rb: bool = True


@dataclass(frozen=True)
class AppConfig:
    """Top-level configuration.

    Aggregates all sub-configurations into a single, frozen object.
    """

    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    mesh: MeshConfig = field(default_factory=MeshConfig)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_VALID_BACKENDS = {"cpu", "cuda"}


def validate_tracking(tracking: TrackingConfig) -> None:
    """Validate tracking values. Raises ValueError on invalid state."""

    if tracking.mesh_width <= 0 or tracking.mesh_height <= 0:
        raise ValueError(
            f"tracking.mesh_width and tracking.mesh_height must be positive, "
            f"got ({tracking.mesh_width}, {tracking.mesh_height})."
        )

    if tracking.max_continuous_checks < 1:
        raise ValueError(
            f"tracking.max_continuous_checks must be >= 1, "
            f"got {tracking.max_continuous_checks}."
        )

    if tracking.max_faces < 1:
        raise ValueError(
            f"tracking.max_faces must be >= 1, got {tracking.max_faces}."
        )

    if not (0.0 <= tracking.iou_threshold <= 1.0):
        raise ValueError(
            f"tracking.iou_threshold must be in [0.0, 1.0], "
            f"got {tracking.iou_threshold}."
        )

    if tracking.enlarge_factor <= 0:
        raise ValueError(
            f"tracking.enlarge_factor must be positive, "
            f"got {tracking.enlarge_factor}."
        )

    if tracking.num_workers < 1:
        raise ValueError(
            f"tracking.num_workers must be >= 1, got {tracking.num_workers}."
        )


def _validate(config: AppConfig) -> None:
    """Validate configuration values. Raises ValueError on invalid state."""

    validate_tracking(config.tracking)

    for section, backend in (
        ("detector", config.detector.backend),
        ("mesh", config.mesh.backend),
    ):
        if backend not in _VALID_BACKENDS:
            raise ValueError(
                f"Invalid {section}.backend: '{backend}'. "
                f"Must be one of {_VALID_BACKENDS}."
            )

    if not (0.0 <= config.detector.confidence_threshold <= 1.0):
        raise ValueError(
            f"detector.confidence_threshold must be in [0.0, 1.0], "
            f"got {config.detector.confidence_threshold}."
        )

    if len(config.detector.input_size) != 2:
        raise ValueError(
            f"detector.input_size must be a (width, height) tuple, "
            f"got {config.detector.input_size}."
        )

    if any(d <= 0 for d in config.detector.input_size):
        raise ValueError(
            f"detector.input_size dimensions must be positive, "
            f"got {config.detector.input_size}."
        )

    if config.detector.scale_factor <= 0:
        raise ValueError(
            f"detector.scale_factor must be positive, "
            f"got {config.detector.scale_factor}."
        )


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

def _parse_tuple(value, expected_len: int, cast_type=float):
    """Convert a list from YAML into a tuple of the expected type and length."""
    if isinstance(value, (list, tuple)):
        if len(value) != expected_len:
            raise ValueError(
                f"Expected {expected_len} values, got {len(value)}: {value}"
            )
        return tuple(cast_type(v) for v in value)
    return value


def _parse_bool(value) -> bool:
    """Accept YAML booleans and the strings environment variables carry."""
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _build_tracking_config(raw: dict) -> TrackingConfig:
    """Build TrackingConfig from a raw YAML dict."""
    kwargs = {}
    for key in ("mesh_width", "mesh_height", "max_continuous_checks",
                "max_faces", "num_workers"):
        if key in raw:
            kwargs[key] = int(raw[key])
    for key in ("iou_threshold", "enlarge_factor"):
        if key in raw:
            kwargs[key] = float(raw[key])
    return TrackingConfig(**kwargs)


def _build_detector_config(raw: dict) -> DetectorConfig:
    """Build DetectorConfig from a raw YAML dict."""
    kwargs = {}
    if "prototxt_path" in raw:
        kwargs["prototxt_path"] = str(raw["prototxt_path"])
    if "weights_path" in raw:
        kwargs["weights_path"] = str(raw["weights_path"])
    if "backend" in raw:
        kwargs["backend"] = str(raw["backend"]).lower()
    if "input_size" in raw:
        kwargs["input_size"] = _parse_tuple(raw["input_size"], 2, int)
    if "mean_values" in raw:
        kwargs["mean_values"] = _parse_tuple(raw["mean_values"], 3, float)
    if "scale_factor" in raw:
        kwargs["scale_factor"] = float(raw["scale_factor"])
    if "confidence_threshold" in raw:
        kwargs["confidence_threshold"] = float(raw["confidence_threshold"])
    return DetectorConfig(**kwargs)


def _build_mesh_config(raw: dict) -> MeshConfig:
    """Build MeshConfig from a raw YAML dict."""
    kwargs = {}
    if "model_path" in raw:
        kwargs["model_path"] = str(raw["model_path"])
    if "backend" in raw:
        kwargs["backend"] = str(raw["backend"]).lower()
    if "swap_rb" in raw:
        kwargs["swap_rb"] = _parse_bool(raw["swap_rb"])
    return MeshConfig(**kwargs)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "FACE_MESH_"


def _apply_env_overrides(raw: dict) -> dict:
    """Apply environment variable overrides to the raw config dict.

    Environment variables follow the pattern:
        FACE_MESH_TRACKING_MAX_FACES=2
        FACE_MESH_DETECTOR_BACKEND=cuda
    """
    env_map = {
        f"{_ENV_PREFIX}TRACKING_MESH_WIDTH": ("tracking", "mesh_width"),
        f"{_ENV_PREFIX}TRACKING_MESH_HEIGHT": ("tracking", "mesh_height"),
        f"{_ENV_PREFIX}TRACKING_MAX_CONTINUOUS_CHECKS": ("tracking", "max_continuous_checks"),
        f"{_ENV_PREFIX}TRACKING_MAX_FACES": ("tracking", "max_faces"),
        f"{_ENV_PREFIX}TRACKING_IOU_THRESHOLD": ("tracking", "iou_threshold"),
        f"{_ENV_PREFIX}TRACKING_NUM_WORKERS": ("tracking", "num_workers"),
        f"{_ENV_PREFIX}DETECTOR_BACKEND": ("detector", "backend"),
        f"{_ENV_PREFIX}DETECTOR_CONFIDENCE_THRESHOLD": ("detector", "confidence_threshold"),
        f"{_ENV_PREFIX}MESH_MODEL_PATH": ("mesh", "model_path"),
        f"{_ENV_PREFIX}MESH_BACKEND": ("mesh", "backend"),
    }

    for env_var, (section, key) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            raw.setdefault(section, {})[key] = value
            logger.debug("Config override from env: %s=%s", env_var, value)

    return raw


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load and validate configuration.

    Precedence (highest → lowest):
        Environment variables > YAML file > Hard-coded defaults

    Args:
        config_path: Path to a YAML configuration file. If None,
                     the system runs entirely on defaults.

    Returns:
        A validated, frozen AppConfig instance.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If any configuration value is invalid.
        yaml.YAMLError: If the YAML file is malformed.
    """
    raw: dict = {}

    # --- Layer 1: YAML file ---
    if config_path is not None:
        resolved = Path(config_path)
        if not resolved.is_absolute():
            resolved = _PROJECT_ROOT / resolved

        if not resolved.is_file():
            raise FileNotFoundError(
                f"Configuration file not found: {resolved}. "
                f"Provide a valid path or omit to use defaults."
            )

        logger.info("Loading config from: %s", resolved)
        with open(resolved, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    # --- Layer 2: Environment variable overrides ---
    raw = _apply_env_overrides(raw)

    config = AppConfig(
        tracking=_build_tracking_config(raw.get("tracking", {})),
        detector=_build_detector_config(raw.get("detector", {})),
        mesh=_build_mesh_config(raw.get("mesh", {})),
    )

    _validate(config)

    logger.debug("Configuration loaded: %s", config)
    return config
