from .preview import COMMAND_CLOSE, COMMAND_QUIT, PipelineListener, PreviewWindow, box_to_display

__all__ = ["COMMAND_CLOSE", "COMMAND_QUIT", "PipelineListener", "PreviewWindow", "box_to_display"]
