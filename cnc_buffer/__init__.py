"""
CNC Buffer Package.

Ordered command buffer between motion producers (path planners, UIs, job
files) and the process that streams protocol strings to a plotter.
Tracks where the pen *will be* once everything buffered has run and
where it *is* according to the executor.

Subpackages:
    buffer: Item store, controller, enqueue/dequeue orchestration
    commands: Command variants queued by producers
    render: Device-profile template rendering
    state: Pen and run state
    bridge: Executor notifications (null, recording, Unix socket)
    observers: Side-channel event sinks
    configs: Device profile loading and validation
    scripts: Command-line tools
"""

__all__ = [
    "buffer",
    "commands",
    "render",
    "state",
    "bridge",
    "observers",
    "configs",
    "scripts",
]
