from .luminance import BRIGHTNESS_THRESHOLD, FailurePolicy, LuminanceSampler, mean_luminance

__all__ = ["BRIGHTNESS_THRESHOLD", "FailurePolicy", "LuminanceSampler", "mean_luminance"]
