"""
Model wrappers. Each module exposes a class and an ml5-style factory that
accepts its arguments in any order.
"""

from .base import BaseModel, MediaModel, ModelState, create_factory
from .classifier import ImageClassifier, image_classifier
from .cluster import Cluster, ClusterResult, KMeansClusterer, kmeans
from .face import Face, FaceLandmarks, face_landmarks
from .pose import COCO_KEYPOINTS, Keypoint, Pose, PoseEstimator, pose_estimator
from .segmentation import BodySegmenter, Segmentation, body_segmenter
from .toxicity import TOXICITY_LABELS, TextToxicity, ToxicityLabel, ToxicityMatch, text_toxicity

__all__ = [
    "BaseModel",
    "BodySegmenter",
    "COCO_KEYPOINTS",
    "Cluster",
    "ClusterResult",
    "Face",
    "FaceLandmarks",
    "ImageClassifier",
    "KMeansClusterer",
    "Keypoint",
    "MediaModel",
    "ModelState",
    "Pose",
    "PoseEstimator",
    "Segmentation",
    "TOXICITY_LABELS",
    "TextToxicity",
    "ToxicityLabel",
    "ToxicityMatch",
    "body_segmenter",
    "create_factory",
    "face_landmarks",
    "image_classifier",
    "kmeans",
    "pose_estimator",
    "text_toxicity",
]
