"""
Command rendering module.

Converts buffer commands to device protocol strings using the device
profile's ``%key`` command templates.
"""

from cnc_buffer.render.renderer import CommandRenderer, fill_template

__all__ = ["CommandRenderer", "fill_template"]
