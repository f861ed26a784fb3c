"""
HTTP classifier client for completed-work photos.

Downloads the completion photo and posts it as multipart form data to the
classifier endpoint. Both calls are bounded by ML_TIMEOUT_SECONDS.
"""

from typing import Optional
import logging

import pydantic
import requests

from app.core.errors import VerificationUnavailableError
from app.models.report import MLPrediction
from .base import VerificationClient

logger = logging.getLogger(__name__)


class HttpVerificationClient(VerificationClient):

    MODEL_NAME = "ripple-model"

    def __init__(self, api_url: str, timeout_seconds: float = 10.0):
        self.api_url = api_url
        self.timeout_seconds = timeout_seconds

    def get_model_info(self) -> dict:
        return {"name": self.MODEL_NAME, "url": self.api_url}

    def get_timeout_seconds(self) -> float:
        return self.timeout_seconds

    def verify_image(self, image_url: str) -> Optional[MLPrediction]:
        try:
            image_resp = requests.get(image_url, timeout=self.get_timeout_seconds())
            if image_resp.status_code != 200:
                logger.warning(f"Could not download completion image ({image_resp.status_code}): {image_url}")
                return None

            resp = requests.post(
                self.api_url,
                files={"image": ("image.jpg", image_resp.content, image_resp.headers.get("Content-Type", "image/jpeg"))},
                timeout=self.get_timeout_seconds(),
            )
        except requests.Timeout as e:
            raise VerificationUnavailableError(f"Classifier timed out after {self.get_timeout_seconds()}s") from e
        except requests.RequestException as e:
            raise VerificationUnavailableError(f"Classifier unreachable: {e}") from e

        if resp.status_code != 200:
            logger.warning(f"Classifier returned status {resp.status_code} for {image_url}")
            return None

        try:
            return MLPrediction(**resp.json())
        except (ValueError, TypeError, pydantic.ValidationError) as e:
            logger.warning(f"Classifier returned an unusable body: {e}")
            return None
