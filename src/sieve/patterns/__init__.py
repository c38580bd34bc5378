from .passthrough import PassthroughPattern
from .series import JsonSeriesPattern, ProtobufSeriesPattern

__all__ = ["PassthroughPattern", "JsonSeriesPattern", "ProtobufSeriesPattern"]
