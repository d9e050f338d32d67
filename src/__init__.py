"""Shared support code for the cnc_buffer command queue.

Architecture layers (strict one-way dependency):
    cnc_buffer/scripts/ → cnc_buffer/{buffer,bridge,observers,render,state,commands,configs}/ → src/utils/

Key invariants:
    - YAML-only configs
    - Positions in device steps end-to-end; durations in integer milliseconds
"""

__version__ = "0.4.0"
