from .stream_aggregation import (
    MovieStreamAggregator,
    SeriesStreamAggregator,
    StreamAggregator,
)

__all__ = ["MovieStreamAggregator", "SeriesStreamAggregator", "StreamAggregator"]
