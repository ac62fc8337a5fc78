"""Static snapshot builder for Ghost-style CMS sites."""

__version__ = "0.1.0"
