"""Volume filters."""

from strategies.filters.volume.volume_ratio_filter import VolumeRatioFilter

__all__ = ['VolumeRatioFilter']
