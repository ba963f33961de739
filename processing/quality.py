"""Objective comparison of original and processed videos."""

import logging
from abc import ABC, abstractmethod
from typing import List, Tuple

import cv2
import numpy as np
from skimage.metrics import structural_similarity as ssim

from models.removal_job import QualityAssessment
from processing.errors import QualityAssessmentError

logger = logging.getLogger(__name__)


class QualityAssessor(ABC):
    """Compares a processed video against its source."""

    @abstractmethod
    def assess(self, original_ref: str, processed_ref: str) -> QualityAssessment:
        """Return scores for the processed video; never raises for unreadable inputs."""


def _to_gray(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        return img
    return cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)


def _clamp_percent(value: float) -> float:
    return round(max(0.0, min(100.0, value)), 2)


class FrameQualityAssessor(QualityAssessor):
    """
    SSIM and PSNR over evenly spaced aligned frame pairs.

    Scores:
        overall: mean SSIM x 100
        artifact: (1 - worst SSIM) x 100, lower is better
        consistency: (1 - population stdev of SSIM) x 100
    """

    def __init__(self, sample_frames: int = 8):
        self.sample_frames = max(1, sample_frames)

    def _frame_count(self, capture: cv2.VideoCapture) -> int:
        return int(capture.get(cv2.CAP_PROP_FRAME_COUNT))

    def _read_at(self, capture: cv2.VideoCapture, index: int):
        capture.set(cv2.CAP_PROP_POS_FRAMES, index)
        ok, frame = capture.read()
        return frame if ok else None

    def _frame_pairs(self, original_ref: str, processed_ref: str) -> List[Tuple[np.ndarray, np.ndarray]]:
        original = cv2.VideoCapture(original_ref)
        processed = cv2.VideoCapture(processed_ref)
        try:
            if not original.isOpened():
                raise QualityAssessmentError(f"Could not open original video: {original_ref}")
            if not processed.isOpened():
                raise QualityAssessmentError(f"Could not open processed video: {processed_ref}")

            frame_count = min(self._frame_count(original), self._frame_count(processed))
            if frame_count <= 0:
                raise QualityAssessmentError("Videos report no frames")

            count = min(self.sample_frames, frame_count)
            indices = sorted({int(i * frame_count / count) for i in range(count)})

            pairs = []
            for index in indices:
                reference = self._read_at(original, index)
                candidate = self._read_at(processed, index)
                if reference is None or candidate is None:
                    logger.debug(f"Could not read frame pair at {index}")
                    continue
                if candidate.shape[:2] != reference.shape[:2]:
                    candidate = cv2.resize(candidate, (reference.shape[1], reference.shape[0]))
                pairs.append((reference, candidate))
        finally:
            original.release()
            processed.release()

        if not pairs:
            raise QualityAssessmentError("No aligned frame pairs could be read")
        return pairs

    def compare(self, original_ref: str, processed_ref: str) -> QualityAssessment:
        """
        Compute the assessment.

        Raises:
            QualityAssessmentError: If the videos cannot be opened or read
        """
        try:
            pairs = self._frame_pairs(original_ref, processed_ref)
            ssim_values = np.array([
                ssim(_to_gray(reference), _to_gray(candidate), data_range=255)
                for reference, candidate in pairs
            ])
            psnr_values = [cv2.PSNR(reference, candidate) for reference, candidate in pairs]
        except (cv2.error, ValueError) as e:
            raise QualityAssessmentError(f"Frame comparison failed: {e}")

        mean_ssim = float(ssim_values.mean())
        mean_psnr = float(np.mean(psnr_values))

        assessment = QualityAssessment(
            overall_score=_clamp_percent(mean_ssim * 100.0),
            artifact_score=_clamp_percent((1.0 - float(ssim_values.min())) * 100.0),
            consistency_score=_clamp_percent((1.0 - float(ssim_values.std())) * 100.0),
            notes=[
                f"Compared {len(pairs)} frame pairs",
                f"Mean SSIM {mean_ssim:.4f}",
                f"Mean PSNR {mean_psnr:.2f} dB",
            ],
            mean_ssim=round(mean_ssim, 4),
            mean_psnr=round(mean_psnr, 2),
            frames_compared=len(pairs)
        )
        logger.info(f"Quality of {processed_ref}: overall={assessment.overall_score} "
                    f"artifact={assessment.artifact_score} consistency={assessment.consistency_score}")
        return assessment

    def assess(self, original_ref: str, processed_ref: str) -> QualityAssessment:
        try:
            return self.compare(original_ref, processed_ref)
        except QualityAssessmentError as e:
            logger.warning(f"Quality assessment unavailable for {processed_ref}: {e}")
            return QualityAssessment.unavailable(str(e))
