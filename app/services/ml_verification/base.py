"""
Verification Client Base Interface.

Defines the contract for image classifiers used to verify completed work.
"""

from abc import ABC, abstractmethod
from typing import Optional

from app.models.report import MLPrediction


class VerificationClient(ABC):
    """
    Abstract base class for completed-work classifiers.

    Contract:
    - Input: public URL of the completion photo
    - Output: MLPrediction, or None when the classifier answered without a
      usable result (non-success status, malformed body)
    - Raises VerificationUnavailableError when the classifier cannot be
      reached or the call exceeds get_timeout_seconds()
    """

    @abstractmethod
    def get_model_info(self) -> dict:
        pass

    @abstractmethod
    def get_timeout_seconds(self) -> float:
        pass

    @abstractmethod
    def verify_image(self, image_url: str) -> Optional[MLPrediction]:
        pass
