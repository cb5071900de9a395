"""
Face Detection Interface Module

Contract between the analysis session and whatever produces face keypoints:
a server-side MediaPipe detector, or a browser that runs the mesh model itself
and posts keypoints. Also defines the per-tick video frame description and the
FacialAnalysis result returned to callers.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from utils.emotion_extractor import EmotionVector
from utils.landmark_normalizer import LandmarkFrame
from utils.micro_expression_scorer import MicroExpressionResult

# HTMLMediaElement.HAVE_CURRENT_DATA
READY_STATE_HAVE_CURRENT_DATA = 2


class AnalysisInitializationError(RuntimeError):
    """The face detector could not be created or loaded."""


@dataclass
class Face:
    """
    One detected face.

    keypoints: list of {"x", "y", "z"?} dicts or [x, y(, z)] sequences
    box: optional {"topLeft", "bottomRight"} or {"xMin", "yMin", "xMax", "yMax"}
    """
    keypoints: List[Any] = field(default_factory=list)
    box: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Face":
        if not isinstance(data, dict):
            raise ValueError("Face must be an object with 'keypoints'")
        keypoints = data.get("keypoints") or data.get("landmarks") or []
        if not isinstance(keypoints, list):
            raise ValueError("Face 'keypoints' must be a list")
        return cls(keypoints=keypoints, box=data.get("box"))


@dataclass
class VideoFrame:
    """
    One video tick as seen by the analysis session.

    ready_state / current_time mirror the browser video element so the
    session can tell an undecodable frame from a frame with no face.
    faces carries keypoints the client already detected, if any.
    coordinate_space says whether detector keypoints for this frame are
    "normalized" ([0, 1]) or "pixel"; pixel keypoints are divided by
    (width, height) at the boundary.
    """
    width: int = 0
    height: int = 0
    ready_state: int = 4
    current_time: float = 0.0
    image: Optional[np.ndarray] = None
    coordinate_space: str = "normalized"
    faces: Optional[List[Face]] = None

    @property
    def is_ready(self) -> bool:
        return (
            self.ready_state >= READY_STATE_HAVE_CURRENT_DATA
            and self.width > 0
            and self.height > 0
            and self.current_time != 0
        )

    @property
    def frame_size(self) -> Optional[Tuple[int, int]]:
        """(width, height) when keypoints need pixel-to-normalized conversion."""
        if self.coordinate_space == "pixel" and self.width > 0 and self.height > 0:
            return self.width, self.height
        return None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "VideoFrame":
        data = data or {}
        space = str(data.get("coordinateSpace", "normalized")).lower()
        if space not in ("normalized", "pixel"):
            raise ValueError(f"Invalid coordinateSpace: {space}. Must be 'normalized' or 'pixel'")
        raw_faces = data.get("faces")
        if raw_faces is not None and not isinstance(raw_faces, list):
            raise ValueError("'faces' must be a list")
        faces = [Face.from_dict(f) for f in raw_faces] if raw_faces is not None else None
        return cls(
            width=int(data.get("width", 0) or 0),
            height=int(data.get("height", 0) or 0),
            ready_state=int(data.get("readyState", 4)),
            current_time=float(data.get("currentTime", 0.0) or 0.0),
            coordinate_space=space,
            faces=faces,
        )


@dataclass(frozen=True)
class FacialAnalysis:
    """Result of one analysis tick."""
    landmarks: Optional[LandmarkFrame]
    emotions: EmotionVector
    micro_expressions: MicroExpressionResult
    is_mock: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "landmarks": self.landmarks.to_dict() if self.landmarks is not None else None,
            "emotions": self.emotions.to_dict(),
            "microExpressions": self.micro_expressions.to_dict(),
            "isMock": self.is_mock,
        }


class FaceDetectorInterface(ABC):
    """
    Abstract interface for face detection implementations.

    estimate_faces mirrors the browser detector: it returns zero or more
    faces and does not raise for a frame without a face.
    """

    @abstractmethod
    def estimate_faces(self, frame: VideoFrame) -> List[Face]:
        """
        Detect faces in a frame.

        Args:
            frame: VideoFrame carrying a BGR image

        Returns:
            List of Face objects (keypoints in normalized coordinates)
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        pass

    @abstractmethod
    def get_name(self) -> str:
        pass

    def close(self) -> None:
        """Release detector resources. Default does nothing."""
        pass


class ClientFaceDetector(FaceDetectorInterface):
    """
    Detector for faces already located by the client.

    The browser runs the mesh model and posts its keypoints with the frame;
    this detector simply hands them back.
    """

    def estimate_faces(self, frame: VideoFrame) -> List[Face]:
        return list(frame.faces or [])

    def is_available(self) -> bool:
        return True

    def get_name(self) -> str:
        return "client"
