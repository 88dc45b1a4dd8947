from .html_renderer import HtmlRenderer

__all__ = ["HtmlRenderer"]
