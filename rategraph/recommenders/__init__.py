from .pipeline import RecommendationPipeline, NodeView, EdgeView

__all__ = ["RecommendationPipeline", "NodeView", "EdgeView"]
