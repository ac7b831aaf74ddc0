"""Application DTOs."""

from .deployment_dto import (
    DeployLinkDTO,
    DeployRequestDTO,
    DeploymentResponseDTO,
    PlatformTokenRequestDTO,
    StepReportDTO,
)

__all__ = [
    "DeployLinkDTO",
    "DeployRequestDTO",
    "DeploymentResponseDTO",
    "PlatformTokenRequestDTO",
    "StepReportDTO",
]
