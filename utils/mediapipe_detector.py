"""
MediaPipe Face Detection Implementation

Server-side FaceDetectorInterface backed by MediaPipe Face Mesh (468 points,
one face). Used when FACE_DETECTION_METHOD=mediapipe and the browser posts
JPEG frames instead of keypoints.

Strategies:
1. Primary: FaceMesh in tracking mode (fast, continuous)
2. Fallback: FaceMesh in static mode (more reliable for new or lost faces)

Keypoints are returned in MediaPipe's native normalized [0, 1] space, which is
the canonical landmark space of the analysis pipeline.
"""

import logging
from typing import List

import cv2
import mediapipe as mp

from utils.face_detection_interface import Face, FaceDetectorInterface, VideoFrame

logger = logging.getLogger(__name__)


class MediaPipeFaceDetector(FaceDetectorInterface):
    """MediaPipe Face Mesh detector with a static-mode fallback."""

    def __init__(self, min_detection_confidence: float = 0.5, min_tracking_confidence: float = 0.5):
        """
        Args:
            min_detection_confidence: Minimum confidence for face detection (0-1)
            min_tracking_confidence: Minimum confidence for face tracking (0-1)
        """
        self._det_conf = max(0.01, min(0.99, float(min_detection_confidence)))
        self._track_conf = max(0.01, min(0.99, float(min_tracking_confidence)))

        self.mp_face_mesh = mp.solutions.face_mesh
        # Landmark refinement (iris points) is off; the mouth indices are unaffected
        self.face_mesh = self.mp_face_mesh.FaceMesh(
            static_image_mode=False,
            max_num_faces=1,
            refine_landmarks=False,
            min_detection_confidence=self._det_conf,
            min_tracking_confidence=self._track_conf,
        )
        # Created on first tracking miss
        self._face_mesh_static = None
        self._available = True

    def estimate_faces(self, frame: VideoFrame) -> List[Face]:
        """
        Detect faces in frame.image (BGR).

        Returns an empty list when the frame has no image or no face.
        """
        image = frame.image
        if image is None or image.size == 0:
            return []

        rgb_image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)

        results = self.face_mesh.process(rgb_image)
        if results.multi_face_landmarks:
            return self._to_faces(results)

        results_static = self._get_face_mesh_static().process(rgb_image)
        if results_static.multi_face_landmarks:
            return self._to_faces(results_static)
        return []

    def _get_face_mesh_static(self):
        if self._face_mesh_static is None:
            self._face_mesh_static = self.mp_face_mesh.FaceMesh(
                static_image_mode=True,
                max_num_faces=1,
                refine_landmarks=False,
                min_detection_confidence=self._det_conf,
            )
        return self._face_mesh_static

    def _to_faces(self, results) -> List[Face]:
        faces = []
        for face_landmarks in results.multi_face_landmarks:
            keypoints = [
                {"x": float(lm.x), "y": float(lm.y), "z": float(lm.z)}
                for lm in face_landmarks.landmark
            ]
            faces.append(Face(keypoints=keypoints))
        return faces

    def is_available(self) -> bool:
        return self._available

    def get_name(self) -> str:
        return "mediapipe"

    def close(self) -> None:
        """Clean up MediaPipe resources."""
        for mesh in (self.face_mesh, self._face_mesh_static):
            if mesh is None:
                continue
            try:
                mesh.close()
            except Exception as e:
                logger.debug("FaceMesh close failed: %s", e)
        self._face_mesh_static = None
        self._available = False
