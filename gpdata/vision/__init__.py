"""Feature-point measurement model (pinhole projection and image Jacobian)."""

from gpdata.vision.camera import image_jacobian, project_features, transform_features

__all__ = [
    "transform_features",
    "project_features",
    "image_jacobian",
]
