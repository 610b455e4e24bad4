"""ferro.core -- terminal UI engine: flexbox layout, differential rendering, input decoding."""

import logging

from ferro.core.component import Component, create_component
from ferro.core.config import HostConfig
from ferro.core.errors import (
    CleanupError,
    FerroError,
    InputFailure,
    LifecycleError,
    MountConflict,
    RenderFailure,
    StyleError,
    TerminalUnavailable,
)
from ferro.core.host import Host
from ferro.core.keys import InputDecoder, KeyEvent, MouseEvent, decode, split_sequences
from ferro.core.layout import Layout, LayoutNode, build_layout_tree
from ferro.core.log import configure_logging
from ferro.core.nodes import BoxNode, Element, TextNode, box, h, normalize, text
from ferro.core.renderer import Renderer, paint
from ferro.core.scheduler import RenderScheduler
from ferro.core.style import Border, Edges, Style
from ferro.core.terminal import ProcessTerminal, Terminal
from ferro.core.tree import ComponentTree
from ferro.core.utils import truncate_to_width, visible_width

logging.getLogger("ferro").addHandler(logging.NullHandler())

__all__ = [
    # Style & nodes
    "Style",
    "Edges",
    "Border",
    "TextNode",
    "BoxNode",
    "Element",
    "text",
    "box",
    "h",
    "normalize",
    # Layout
    "Layout",
    "LayoutNode",
    "build_layout_tree",
    # Input
    "KeyEvent",
    "MouseEvent",
    "InputDecoder",
    "decode",
    "split_sequences",
    # Rendering
    "Renderer",
    "paint",
    "Terminal",
    "ProcessTerminal",
    "visible_width",
    "truncate_to_width",
    # Components
    "Component",
    "create_component",
    "ComponentTree",
    # Host
    "Host",
    "HostConfig",
    "RenderScheduler",
    "configure_logging",
    # Errors
    "FerroError",
    "MountConflict",
    "RenderFailure",
    "InputFailure",
    "LifecycleError",
    "TerminalUnavailable",
    "StyleError",
    "CleanupError",
]
