from .client import MockEvaluationClient, frame_json

__all__ = ["MockEvaluationClient", "frame_json"]
