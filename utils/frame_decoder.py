"""
Frame decoding for server-side detection.

Turns a posted JPEG/PNG body into a VideoFrame carrying a BGR image. Frames
wider than config.MAX_FRAME_WIDTH are downscaled to cut detection time; since
MediaPipe keypoints are normalized, downscaling does not move the landmarks.
"""

from typing import Optional

import cv2
import numpy as np

from utils.face_detection_interface import VideoFrame


def decode_frame(image_bytes: bytes, max_width: int, current_time: float = 0.0) -> Optional[VideoFrame]:
    """
    Decode image bytes to a VideoFrame.

    Args:
        image_bytes: Encoded image (JPEG, PNG, ...)
        max_width: Downscale frames wider than this
        current_time: Client playback time of the frame; 0 marks it not ready

    Returns:
        VideoFrame, or None when the bytes are not a decodable image
    """
    if not image_bytes:
        return None
    arr = np.frombuffer(image_bytes, dtype=np.uint8)
    image = cv2.imdecode(arr, cv2.IMREAD_COLOR)
    if image is None:
        return None
    h, w = image.shape[:2]
    if max_width > 0 and w > max_width:
        scale = max_width / w
        image = cv2.resize(image, (max_width, int(round(h * scale))), interpolation=cv2.INTER_AREA)
        h, w = image.shape[:2]
    return VideoFrame(
        width=w,
        height=h,
        ready_state=4,
        current_time=current_time,
        image=image,
    )
